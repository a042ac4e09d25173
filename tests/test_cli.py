"""Tests for the ssi-verify command line."""

import json

import pytest
from click.testing import CliRunner

from conftest import VERIFIER_DID
from ssi_verifier.cli import main

DEFINITION = {
    "id": "Example Definition",
    "input_descriptors": [
        {
            "id": "VerifiableID",
            "constraints": {
                "fields": [
                    {"path": ["$.type"], "filter": {"type": "array", "contains": {"const": "VerifiableID"}}}
                ]
            },
        }
    ],
}


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def write(tmp_path):
    def _write(name, content):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)

    return _write


class TestHelp:
    def test_examples_put_group_options_first(self, runner):
        """Test the help examples use an order click accepts."""
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "ssi-verify --trusted-issuer did:key:z... credential vc.jwt" in result.output
        assert "credential vc.jwt --trusted-issuer" not in result.output


class TestCredentialCommand:
    """Tests for `ssi-verify credential`."""

    def test_valid_credential(self, runner, write, issue_credential, issuer_wallet):
        """Test a trusted credential exits 0."""
        source = write("vc.jwt", issue_credential())

        result = runner.invoke(
            main, ["--no-schema", "--trusted-issuer", issuer_wallet.did, "credential", source]
        )

        assert result.exit_code == 0, result.output
        assert "VALID" in result.output

    def test_json_output(self, runner, write, issue_credential, issuer_wallet):
        source = write("vc.jwt", issue_credential())

        result = runner.invoke(
            main,
            ["--no-schema", "--trusted-issuer", issuer_wallet.did, "--json-output", "credential", source],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["result"] is True
        assert data["issuer"] == issuer_wallet.did
        assert data["validations"]["schema_validation"] is None

    def test_untrusted_issuer(self, runner, write, issue_credential):
        """Test a verification failure exits 1."""
        source = write("vc.jwt", issue_credential())

        result = runner.invoke(main, ["--no-schema", "credential", source])

        assert result.exit_code == 1
        assert "ISSUER_NOT_TRUSTED" in result.output

    def test_stdin(self, runner, issue_credential, issuer_wallet):
        result = runner.invoke(
            main,
            ["--no-schema", "--trusted-issuer", issuer_wallet.did, "credential", "-"],
            input=issue_credential(),
        )

        assert result.exit_code == 0, result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(main, ["credential", str(tmp_path / "missing.jwt")])

        assert result.exit_code == 2
        assert "File not found" in result.output

    def test_unparseable_credential(self, runner, write):
        """Test input that is neither a JWT nor JSON exits 2."""
        source = write("vc.txt", "not a credential")

        result = runner.invoke(main, ["credential", source])

        assert result.exit_code == 2
        assert "INVALID_CREDENTIAL_TYPE" in result.output


class TestPresentationCommand:
    """Tests for `ssi-verify presentation`."""

    def test_valid_presentation(self, runner, write, issue_credential, issue_presentation, issuer_wallet):
        source = write("vp.jwt", issue_presentation([issue_credential()]))

        result = runner.invoke(
            main,
            [
                "--no-schema",
                "--trusted-issuer",
                issuer_wallet.did,
                "presentation",
                source,
                "--audience",
                VERIFIER_DID,
            ],
        )

        assert result.exit_code == 0, result.output

    def test_wrong_audience(self, runner, write, issue_credential, issue_presentation, issuer_wallet):
        source = write("vp.jwt", issue_presentation([issue_credential()]))

        result = runner.invoke(
            main,
            [
                "--no-schema",
                "--trusted-issuer",
                issuer_wallet.did,
                "presentation",
                source,
                "--audience",
                VERIFIER_DID,
                "--audience",
                "did:web:other.example.com",
            ],
        )

        assert result.exit_code == 1
        assert "INVALID_AUD" in result.output

    def test_audience_is_required(self, runner, write, issue_credential, issue_presentation):
        source = write("vp.jwt", issue_presentation([issue_credential()]))

        result = runner.invoke(main, ["presentation", source])

        assert result.exit_code == 2


class TestMatchCommand:
    """Tests for `ssi-verify match`."""

    def test_match(self, runner, write, issue_credential, issue_presentation):
        source = write("vp.jwt", issue_presentation([issue_credential()]))
        definition = write("definition.json", json.dumps(DEFINITION))

        result = runner.invoke(main, ["--json-output", "match", source, definition])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["presentation_submission"]["descriptor_map"] == [
            {"id": "VerifiableID", "format": "jwt_vc", "path": "$.verifiableCredential[0]"}
        ]

    def test_no_match(self, runner, write, issue_presentation):
        source = write("vp.jwt", issue_presentation([]))
        definition = write("definition.json", json.dumps(DEFINITION))

        result = runner.invoke(main, ["match", source, definition])

        assert result.exit_code == 1
        assert "No input descriptor is satisfied" in result.output

    def test_invalid_definition(self, runner, write, issue_presentation):
        source = write("vp.jwt", issue_presentation([]))
        definition = write("definition.json", "{not json")

        result = runner.invoke(main, ["match", source, definition])

        assert result.exit_code == 2
        assert "Invalid JSON" in result.output
