"""Shared fixtures: wallets and JWT credential / presentation factories."""

import json
import time

import pytest

from ssi_verifier import (
    CredentialJwtBuilder,
    NaturalPersonWallet,
    PresentationJwtBuilder,
    StaticLegalEntityResolver,
    Verifier,
)
from ssi_verifier.adapters import DidJwkPublicKeyAdapter, DidKeyPublicKeyAdapter
from ssi_verifier.encoding import b64url_decode, b64url_encode

SCHEMA_URL = "https://schemas.example.com/national-id-schema.json"
VERIFIER_DID = "did:web:verifier.example.com"


@pytest.fixture(scope="session")
def issuer_wallet():
    """ES256 issuer wallet."""
    return NaturalPersonWallet.create("ES256")


@pytest.fixture(scope="session")
def holder_wallet():
    """ES256 holder wallet."""
    return NaturalPersonWallet.create("ES256")


@pytest.fixture
def issue_credential(issuer_wallet, holder_wallet):
    """Factory for consistent, signed JWT credentials."""

    def _issue(wallet=None, subject=None, issued_at=None, expires_at=None, **subject_claims):
        wallet = wallet or issuer_wallet
        subject = subject or holder_wallet.did
        now = int(time.time())
        builder = (
            CredentialJwtBuilder()
            .set_context(["https://www.w3.org/2018/credentials/v1"])
            .set_type(["VerifiableCredential", "VerifiableID"])
            .set_jti("urn:uuid:3f4c7a1e-0e5d-4c59-9a0c-3d6f8f1b2a10")
            .set_issuer(wallet.did)
            .set_issued_at(now - 60 if issued_at is None else issued_at)
            .set_expiration_time(now + 3600 if expires_at is None else expires_at)
            .set_credential_subject({"id": subject, **subject_claims})
            .set_subject(subject)
            .set_credential_schema(SCHEMA_URL)
            .set_protected_header({"alg": wallet.alg, "kid": wallet.verification_method})
        )
        return builder.sign(wallet.private_jwk)

    return _issue


@pytest.fixture
def issue_presentation(holder_wallet):
    """Factory for signed JWT presentations."""

    def _issue(credentials, audience=VERIFIER_DID, wallet=None):
        wallet = wallet or holder_wallet
        now = int(time.time())
        builder = (
            PresentationJwtBuilder()
            .set_context(["https://www.w3.org/2018/credentials/v1"])
            .set_type(["VerifiablePresentation"])
            .set_jti("urn:uuid:8d0f4c7e-2f5b-4a3e-b1c7-5d2e6f9a0b31")
            .set_issuer(wallet.did)
            .set_holder(wallet.did)
            .set_audience(audience)
            .set_issued_at(now - 60)
            .set_expiration_time(now + 600)
            .set_nonce("n-0S6_WzA2Mj")
            .set_verifiable_credential(credentials)
            .set_protected_header({"alg": wallet.alg, "kid": wallet.verification_method})
        )
        return builder.sign(wallet.private_jwk)

    return _issue


@pytest.fixture
def verifier(issuer_wallet):
    """Verifier trusting the issuer wallet and resolving keys offline."""
    return Verifier(
        key_resolver=[DidKeyPublicKeyAdapter(), DidJwkPublicKeyAdapter()],
        trust_resolver=[StaticLegalEntityResolver([issuer_wallet.did])],
    )


def replace_payload(token, update):
    """Re-encode a JWT payload after ``update(payload)``, keeping the old signature."""
    header, payload, signature = token.split(".")
    claims = json.loads(b64url_decode(payload))
    update(claims)
    encoded = b64url_encode(json.dumps(claims).encode("utf-8"))
    return f"{header}.{encoded}.{signature}"


@pytest.fixture
def tamper():
    return replace_payload
