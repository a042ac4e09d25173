"""Tests for presentation definition matching."""

import uuid

import pytest

from ssi_verifier import (
    CredentialJwtBuilder,
    CredentialLdpBuilder,
    PresentationJwtBuilder,
    credential_matches_descriptor,
    match_presentation_definition,
)
from ssi_verifier.presentation_definition import PresentationDefinition

NATIONAL_ID_SCHEMA = "https://api-pilot.ebsi.eu/national-id-schema.json"
EUROPASS_SCHEMA = "https://api-pilot.ebsi.eu/europass-random-schema.json"

TWO_DESCRIPTORS = {
    "id": "Example Definition",
    "format": {"jwt_vc": {"alg": ["ES256"]}},
    "input_descriptors": [
        {
            "id": "NationalID",
            "constraints": {
                "fields": [
                    {
                        "path": ["$.credentialSchema.id"],
                        "filter": {"type": "string", "const": NATIONAL_ID_SCHEMA},
                    },
                    {
                        "path": ["$.credentialSubject.personalIdentifier"],
                        "filter": {"type": "string"},
                    },
                ]
            },
        },
        {
            "id": "Europass",
            "constraints": {
                "fields": [
                    {
                        "path": ["$.credentialSchema.id"],
                        "filter": {"type": "string", "const": EUROPASS_SCHEMA},
                    }
                ]
            },
        },
    ],
}

TYPE_CONSTRAINT = {
    "id": "Example Definition",
    "input_descriptors": [
        {
            "id": "VerifiableID",
            "constraints": {
                "fields": [
                    {
                        "path": ["$.type"],
                        "filter": {"type": "array", "contains": {"const": "VerifiableID"}},
                    }
                ]
            },
        }
    ],
}


def sign_vc(wallet, schema, subject, types=("VerifiableCredential",)):
    return (
        CredentialJwtBuilder()
        .set_type(list(types))
        .set_credential_subject(subject)
        .set_credential_schema(schema)
        .set_protected_header({"alg": "ES256", "kid": wallet.verification_method})
        .sign(wallet.private_jwk)
    )


def sign_vp(wallet, credentials):
    return (
        PresentationJwtBuilder()
        .set_verifiable_credential(credentials)
        .set_protected_header({"alg": "ES256", "kid": wallet.verification_method})
        .sign(wallet.private_jwk)
    )


@pytest.fixture
def national_id_vc(holder_wallet):
    return sign_vc(
        holder_wallet,
        NATIONAL_ID_SCHEMA,
        {"id": "123xxx", "personalIdentifier": "urn:gr:1234"},
        types=("VerifiableCredential", "VerifiableID"),
    )


@pytest.fixture
def europass_vc(holder_wallet):
    return sign_vc(holder_wallet, EUROPASS_SCHEMA, {"id": "456xxx"})


class TestMatchPresentationDefinition:
    """Tests for match_presentation_definition."""

    def test_one_matching_credential(self, holder_wallet, national_id_vc):
        """Test a submission with one VC out of two descriptors."""
        result = match_presentation_definition(sign_vp(holder_wallet, [national_id_vc]), TWO_DESCRIPTORS)

        assert result is not None
        assert result.conforming_credentials == [national_id_vc]
        submission = result.presentation_submission.to_dict()
        assert submission["definition_id"] == "Example Definition"
        assert submission["descriptor_map"] == [
            {"id": "NationalID", "format": "jwt_vc", "path": "$.verifiableCredential[0]"}
        ]
        uuid.UUID(submission["id"])

    def test_two_matching_credentials(self, holder_wallet, national_id_vc, europass_vc):
        """Test a submission with two VCs in descriptor order."""
        vp = sign_vp(holder_wallet, [europass_vc, national_id_vc])

        result = match_presentation_definition(vp, TWO_DESCRIPTORS)

        assert result.conforming_credentials == [national_id_vc, europass_vc]
        assert [e.to_dict() for e in result.presentation_submission.descriptor_map] == [
            {"id": "NationalID", "format": "jwt_vc", "path": "$.verifiableCredential[1]"},
            {"id": "Europass", "format": "jwt_vc", "path": "$.verifiableCredential[0]"},
        ]

    def test_type_constraint_claims_first_credential(self, holder_wallet, national_id_vc, europass_vc):
        """Test a descriptor claims only the first conforming credential."""
        vp = sign_vp(holder_wallet, [national_id_vc, europass_vc, national_id_vc])

        result = match_presentation_definition(vp, TYPE_CONSTRAINT)

        assert len(result.conforming_credentials) == 1
        assert [e.path for e in result.presentation_submission.descriptor_map] == [
            "$.verifiableCredential[0]"
        ]

    def test_claimed_credentials_are_not_reused(self, holder_wallet, national_id_vc):
        """Test two identical descriptors pick two different credentials."""
        definition = {
            "id": "twice",
            "input_descriptors": [
                {**TYPE_CONSTRAINT["input_descriptors"][0], "id": "first"},
                {**TYPE_CONSTRAINT["input_descriptors"][0], "id": "second"},
                {**TYPE_CONSTRAINT["input_descriptors"][0], "id": "third"},
            ],
        }
        vp = sign_vp(holder_wallet, [national_id_vc, national_id_vc])

        result = match_presentation_definition(vp, definition)

        assert [(e.id, e.path) for e in result.presentation_submission.descriptor_map] == [
            ("first", "$.verifiableCredential[0]"),
            ("second", "$.verifiableCredential[1]"),
        ]

    def test_no_match(self, holder_wallet, europass_vc):
        """Test None is returned when no descriptor is satisfied."""
        assert match_presentation_definition(sign_vp(holder_wallet, [europass_vc]), TYPE_CONSTRAINT) is None

    def test_unparseable_credentials_are_ignored(self, holder_wallet, national_id_vc):
        vp = sign_vp(holder_wallet, ["garbage", national_id_vc])

        result = match_presentation_definition(vp, PresentationDefinition.from_dict(TYPE_CONSTRAINT))

        assert result.presentation_submission.descriptor_map[0].path == "$.verifiableCredential[1]"


class TestCredentialMatchesDescriptor:
    """Tests for the single-credential check."""

    def test_matching_and_non_matching(self, national_id_vc, europass_vc):
        descriptor = TWO_DESCRIPTORS["input_descriptors"][0]

        assert credential_matches_descriptor(descriptor, national_id_vc) is True
        assert credential_matches_descriptor(descriptor, europass_vc) is False

    def test_field_without_filter_requires_a_value(self, national_id_vc):
        present = {"id": "d", "constraints": {"fields": [{"path": ["$.credentialSubject.id"]}]}}
        absent = {"id": "d", "constraints": {"fields": [{"path": ["$.credentialSubject.email"]}]}}

        assert credential_matches_descriptor(present, national_id_vc) is True
        assert credential_matches_descriptor(absent, national_id_vc) is False

    def test_any_path_may_match(self, national_id_vc):
        descriptor = {
            "id": "d",
            "constraints": {
                "fields": [
                    {
                        "path": ["$.credentialSubject.email", "$.credentialSubject.personalIdentifier"],
                        "filter": {"type": "string", "pattern": "^urn:gr:"},
                    }
                ]
            },
        }

        assert credential_matches_descriptor(descriptor, national_id_vc) is True

    def test_linked_data_credential(self, holder_wallet):
        document = (
            CredentialLdpBuilder()
            .set_type(["VerifiableCredential", "VerifiableID"])
            .set_credential_subject({"id": "did:example:holder"})
            .sign(holder_wallet.private_jwk, holder_wallet.verification_method)
        )

        assert credential_matches_descriptor(TYPE_CONSTRAINT["input_descriptors"][0], document) is True
