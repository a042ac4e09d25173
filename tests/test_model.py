"""Tests for credential and presentation parsing."""

import json

import pytest

from ssi_verifier import CredentialLdpBuilder, parse_credential, parse_presentation
from ssi_verifier.encoding import b64url_encode
from ssi_verifier.errors import CredentialParseError, ErrorCode
from ssi_verifier.model import (
    JwtCredential,
    JwtPresentation,
    LdpCredential,
    LdpPresentation,
    as_set,
    credential_subject_id,
    issuer_id,
)


def encode_segment(value):
    return b64url_encode(json.dumps(value).encode("utf-8"))


def unsigned_jwt(header, payload):
    return f"{encode_segment(header)}.{encode_segment(payload)}.c2ln"


class TestParseCredential:
    """Tests for parse_credential."""

    def test_jwt_credential(self, issue_credential, issuer_wallet, holder_wallet):
        credential = parse_credential(issue_credential())

        assert isinstance(credential, JwtCredential)
        assert credential.issuer == issuer_wallet.did
        assert credential.subject == holder_wallet.did
        assert credential.algorithm == "ES256"
        assert credential.verification_method == issuer_wallet.verification_method
        assert credential.expires_at - credential.issued_at == 3660

    def test_bytes_and_whitespace(self, issue_credential):
        token = issue_credential()

        credential = parse_credential(f"  {token}\n".encode("utf-8"))

        assert credential.raw == token

    def test_linked_data_credential(self, issuer_wallet):
        text = (
            CredentialLdpBuilder()
            .set_jti("urn:uuid:1")
            .set_issuer(issuer_wallet.did)
            .set_issued_at(1700000000)
            .set_expiration_time(1700003600)
            .set_credential_subject({"id": "did:example:holder"})
            .sign(issuer_wallet.private_jwk, issuer_wallet.verification_method)
        )

        credential = parse_credential(text)

        assert isinstance(credential, LdpCredential)
        assert credential.identifier == "urn:uuid:1"
        assert credential.subject == "did:example:holder"
        assert credential.issued_at == 1700000000
        assert credential.expires_at == 1700003600
        assert credential.verification_method == issuer_wallet.verification_method

    def test_mapping_is_copied(self):
        document = {"issuer": {"id": "did:example:issuer"}, "credentialSubject": {}}

        credential = parse_credential(document)
        credential.document["issuer"] = "changed"

        assert document["issuer"] == {"id": "did:example:issuer"}

    def test_non_jwt_typ_falls_back_to_json(self):
        """Test a token whose typ is not JWT is not accepted as a JWT."""
        token = unsigned_jwt({"alg": "ES256", "typ": "dc+sd-jwt"}, {"vc": {}})

        with pytest.raises(CredentialParseError) as exc_info:
            parse_credential(token)
        assert exc_info.value.code == ErrorCode.INVALID_CREDENTIAL_TYPE

    def test_jwt_without_vc_claim(self):
        token = unsigned_jwt({"alg": "ES256", "typ": "JWT"}, {"iss": "did:example:issuer"})

        with pytest.raises(CredentialParseError):
            parse_credential(token)

    @pytest.mark.parametrize("artifact", ["not a credential", "[1, 2]", b"\xff\xfe", 42])
    def test_invalid_artifacts(self, artifact):
        with pytest.raises(CredentialParseError) as exc_info:
            parse_credential(artifact)
        assert str(exc_info.value).startswith("INVALID_CREDENTIAL_TYPE")


class TestParsePresentation:
    """Tests for parse_presentation."""

    def test_jwt_presentation(self, issue_credential, issue_presentation, holder_wallet):
        credential = issue_credential()

        presentation = parse_presentation(issue_presentation([credential]))

        assert isinstance(presentation, JwtPresentation)
        assert presentation.holder == holder_wallet.did
        assert presentation.verifiable_credentials == (credential,)

    def test_credential_jwt_is_not_a_presentation(self, issue_credential):
        with pytest.raises(CredentialParseError):
            parse_presentation(issue_credential())

    def test_single_embedded_credential(self):
        presentation = parse_presentation(
            {"holder": "did:example:holder", "verifiableCredential": {"id": "urn:uuid:1"}}
        )

        assert isinstance(presentation, LdpPresentation)
        assert presentation.subject == "did:example:holder"
        assert presentation.verifiable_credentials == ({"id": "urn:uuid:1"},)


class TestHelpers:
    """Tests for the accessor helpers."""

    def test_issuer_id(self):
        assert issuer_id("did:example:1") == "did:example:1"
        assert issuer_id({"id": "did:example:1", "name": "Issuer"}) == "did:example:1"
        assert issuer_id(None) is None

    def test_credential_subject_id(self):
        assert credential_subject_id({"credentialSubject": {"id": "a"}}) == "a"
        assert credential_subject_id({"credentialSubject": [{"id": "b"}, {"id": "c"}]}) == "b"
        assert credential_subject_id({}) is None

    def test_as_set(self):
        assert as_set("A") == as_set(["A"])
        assert as_set(["A", "B"]) == as_set(["B", "A"])
        assert as_set(None) == frozenset()
