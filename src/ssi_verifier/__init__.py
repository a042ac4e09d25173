"""
SSI Verifier - issue and verify W3C Verifiable Credentials and Presentations.

Supports:
- JWT credentials and presentations (jwt_vc / jwt_vp)
- Linked-data documents with Data Integrity proofs (ecdsa-jcs-2022, eddsa-jcs-2022)
- did:key, did:jwk, did:web and did:ebsi key resolution
- EBSI Trusted Issuers Registry lookups
- Remote JSON Schema validation (2020-12, 2019-09, draft-07)
- Presentation definition matching
"""

from ssi_verifier.adapters import (
    DidJwkPublicKeyAdapter,
    DidKeyPublicKeyAdapter,
    DidWebPublicKeyAdapter,
    EbsiPublicKeyAdapter,
    EbsiTrustedIssuerAdapter,
    StaticLegalEntityResolver,
    StaticPublicKeyResolver,
    did_key_from_jwk,
    jwk_from_did_key,
)
from ssi_verifier.config import VerifierConfig
from ssi_verifier.did_resolver import DIDResolutionError, DIDResolver
from ssi_verifier.errors import (
    BuilderError,
    CredentialParseError,
    ErrorCode,
    SSIError,
    VerificationError,
)
from ssi_verifier.issuer import (
    CredentialJwtBuilder,
    CredentialLdpBuilder,
    PresentationJwtBuilder,
    PresentationLdpBuilder,
)
from ssi_verifier.model import parse_credential, parse_presentation
from ssi_verifier.presentation_definition import (
    PresentationDefinition,
    PresentationSubmission,
    credential_matches_descriptor,
    match_presentation_definition,
)
from ssi_verifier.resolvers import (
    LegalEntityResolver,
    LegalEntityResolverChain,
    PublicKeyResolver,
    PublicKeyResolverChain,
)
from ssi_verifier.verifier import (
    DetailedVerifyResults,
    VerificationResult,
    Verifier,
    VerifyOptions,
    verify_credential,
    verify_presentation,
)
from ssi_verifier.wallet import NaturalPersonWallet

__version__ = "0.1.0"

__all__ = [
    "Verifier",
    "VerifyOptions",
    "VerificationResult",
    "DetailedVerifyResults",
    "verify_credential",
    "verify_presentation",
    "parse_credential",
    "parse_presentation",
    "PublicKeyResolver",
    "LegalEntityResolver",
    "PublicKeyResolverChain",
    "LegalEntityResolverChain",
    "DidKeyPublicKeyAdapter",
    "DidJwkPublicKeyAdapter",
    "DidWebPublicKeyAdapter",
    "EbsiPublicKeyAdapter",
    "EbsiTrustedIssuerAdapter",
    "StaticPublicKeyResolver",
    "StaticLegalEntityResolver",
    "did_key_from_jwk",
    "jwk_from_did_key",
    "DIDResolver",
    "DIDResolutionError",
    "VerifierConfig",
    "ErrorCode",
    "SSIError",
    "VerificationError",
    "CredentialParseError",
    "BuilderError",
    "CredentialJwtBuilder",
    "PresentationJwtBuilder",
    "CredentialLdpBuilder",
    "PresentationLdpBuilder",
    "PresentationDefinition",
    "PresentationSubmission",
    "match_presentation_definition",
    "credential_matches_descriptor",
    "NaturalPersonWallet",
]
