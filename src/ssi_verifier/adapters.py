"""
Concrete public key and legal entity resolvers.

Supported DID methods:
- did:key (jwk_jcs-pub, Ed25519, P-256, secp256k1 multicodecs)
- did:jwk
- did:web
- did:ebsi (EBSI DID registry v4)

Trust registry: EBSI Trusted Issuers Registry v4.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

import httpx
from cryptography.hazmat.primitives.asymmetric import ec

from ssi_verifier.config import VerifierConfig
from ssi_verifier.did_resolver import DIDDocument, DIDResolutionError, DIDResolver
from ssi_verifier.encoding import (
    b64url_decode,
    b64url_encode,
    base58btc_decode,
    base58btc_encode,
    canonicalize_json,
    varint_decode,
    varint_encode,
)
from ssi_verifier.errors import ErrorCode
from ssi_verifier.resolvers import (
    LegalEntityResolver,
    PublicKeyResolver,
    ResolverError,
    UnsupportedDIDMethodError,
    did_method,
)

log = logging.getLogger(__name__)

# multicodec codes
JWK_JCS_PUB = 0xEB51
ED25519_PUB = 0xED
P256_PUB = 0x1200
SECP256K1_PUB = 0xE7

_EC_CURVES = {P256_PUB: ("P-256", ec.SECP256R1()), SECP256K1_PUB: ("secp256k1", ec.SECP256K1())}

# Members kept when a JWK is canonicalized into a did:key
_JWK_REQUIRED_MEMBERS = {
    "EC": ("crv", "kty", "x", "y"),
    "OKP": ("crv", "kty", "x"),
    "RSA": ("e", "kty", "n"),
}


class InvalidDIDError(ResolverError):
    """Raised when a DID cannot be decoded."""

    code = ErrorCode.INVALID_DID


def did_key_from_jwk(jwk: Mapping[str, Any]) -> str:
    """Derive a did:key (jwk_jcs-pub multicodec) from a public JWK."""
    members = _JWK_REQUIRED_MEMBERS.get(jwk.get("kty", ""))
    if members is None:
        raise ValueError(f"Unsupported key type: {jwk.get('kty')}")
    public = {name: jwk[name] for name in members}
    data = varint_encode(JWK_JCS_PUB) + canonicalize_json(public).encode("utf-8")
    return "did:key:z" + base58btc_encode(data)


def jwk_from_did_key(did: str) -> dict[str, Any]:
    """Decode the public JWK embedded in a did:key identifier.

    Raises:
        InvalidDIDError: If the identifier is malformed or uses an unknown codec.
    """
    did = did.split("#")[0]
    if not did.startswith("did:key:z"):
        raise InvalidDIDError(f"INVALID_DID: {did} is not a base58btc did:key")
    try:
        data = base58btc_decode(did[len("did:key:z"):])
        codec, offset = varint_decode(data)
    except ValueError as e:
        raise InvalidDIDError(f"INVALID_DID: {did}: {e}") from e
    key_bytes = data[offset:]

    if codec == JWK_JCS_PUB:
        try:
            jwk = json.loads(key_bytes.decode("utf-8"))
        except ValueError as e:
            raise InvalidDIDError(f"INVALID_DID: {did}: embedded JWK is not JSON") from e
        if not isinstance(jwk, dict):
            raise InvalidDIDError(f"INVALID_DID: {did}: embedded JWK is not an object")
        return jwk

    if codec == ED25519_PUB:
        if len(key_bytes) != 32:
            raise InvalidDIDError(f"INVALID_DID: {did}: Ed25519 key must be 32 bytes")
        return {"kty": "OKP", "crv": "Ed25519", "x": b64url_encode(key_bytes)}

    if codec in _EC_CURVES:
        crv, curve = _EC_CURVES[codec]
        try:
            numbers = ec.EllipticCurvePublicKey.from_encoded_point(curve, key_bytes).public_numbers()
        except ValueError as e:
            raise InvalidDIDError(f"INVALID_DID: {did}: invalid {crv} point") from e
        size = (curve.key_size + 7) // 8
        return {
            "kty": "EC",
            "crv": crv,
            "x": b64url_encode(numbers.x.to_bytes(size, "big")),
            "y": b64url_encode(numbers.y.to_bytes(size, "big")),
        }

    raise InvalidDIDError(f"INVALID_DID: {did}: unsupported multicodec 0x{codec:x}")


def _jwk_from_document(document: DIDDocument, verification_method: str) -> dict[str, Any]:
    vm = document.get_verification_method(verification_method)
    if vm is None:
        raise DIDResolutionError(
            f"Verification method {verification_method} not found in DID Document"
        )
    if not vm.public_key_jwk:
        raise DIDResolutionError(
            f"No publicKeyJwk in verification method {verification_method}"
        )
    return vm.public_key_jwk


class DidKeyPublicKeyAdapter(PublicKeyResolver):
    """Resolves did:key verification methods without network access."""

    async def get_public_key_jwk(self, verification_method: str) -> dict[str, Any]:
        method = did_method(verification_method)
        if method != "key":
            raise UnsupportedDIDMethodError(method, type(self).__name__)
        return jwk_from_did_key(verification_method)


class DidJwkPublicKeyAdapter(PublicKeyResolver):
    """Resolves did:jwk verification methods (base64url encoded JWK)."""

    async def get_public_key_jwk(self, verification_method: str) -> dict[str, Any]:
        method = did_method(verification_method)
        if method != "jwk":
            raise UnsupportedDIDMethodError(method, type(self).__name__)
        encoded = verification_method.split("#")[0][len("did:jwk:"):]
        try:
            jwk = json.loads(b64url_decode(encoded))
        except ValueError as e:
            raise InvalidDIDError(f"INVALID_DID: {verification_method}") from e
        if not isinstance(jwk, dict):
            raise InvalidDIDError(f"INVALID_DID: {verification_method}")
        return jwk


class DidWebPublicKeyAdapter(PublicKeyResolver):
    """Resolves did:web verification methods over HTTPS."""

    def __init__(self, did_resolver: DIDResolver | None = None) -> None:
        self.did_resolver = did_resolver or DIDResolver()

    async def get_public_key_jwk(self, verification_method: str) -> dict[str, Any]:
        method = did_method(verification_method)
        if method != "web":
            raise UnsupportedDIDMethodError(method, type(self).__name__)
        document = await self.did_resolver.resolve_web(verification_method)
        return _jwk_from_document(document, verification_method)


class EbsiPublicKeyAdapter(PublicKeyResolver):
    """Resolves did:ebsi verification methods through the EBSI DID registry."""

    def __init__(
        self,
        registry_url: str | None = None,
        did_resolver: DIDResolver | None = None,
    ) -> None:
        self.registry_url = registry_url or VerifierConfig().did_registry_url
        self.did_resolver = did_resolver or DIDResolver()

    async def get_public_key_jwk(self, verification_method: str) -> dict[str, Any]:
        method = did_method(verification_method)
        if method != "ebsi":
            raise UnsupportedDIDMethodError(method, type(self).__name__)
        document = await self.did_resolver.resolve_from_registry(
            self.registry_url, verification_method
        )
        return _jwk_from_document(document, verification_method)


class StaticPublicKeyResolver(PublicKeyResolver):
    """Serves keys from a fixed ``verification method -> JWK`` map."""

    def __init__(self, keys: Mapping[str, Mapping[str, Any]]) -> None:
        self.keys = {vm: dict(jwk) for vm, jwk in keys.items()}

    async def get_public_key_jwk(self, verification_method: str) -> dict[str, Any]:
        try:
            return self.keys[verification_method]
        except KeyError:
            raise ResolverError(f"Unknown verification method {verification_method}") from None


class EbsiTrustedIssuerAdapter(LegalEntityResolver):
    """Looks an issuer up in the EBSI Trusted Issuers Registry.

    A 2xx answer means the issuer is registered. Any HTTP or network error
    is reported as "not a legal entity".
    """

    def __init__(
        self,
        registry_url: str | None = None,
        timeout: float = 30.0,
        verify_ssl: bool = True,
    ) -> None:
        self.registry_url = registry_url or VerifierConfig().trusted_issuers_registry_url
        self.timeout = timeout
        self.verify_ssl = verify_ssl

    async def is_legal_entity(self, identifier: str) -> bool:
        url = f"{self.registry_url.rstrip('/')}/{identifier}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, verify=self.verify_ssl) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            log.info("Issuer %s not found in trusted issuers registry: %s", identifier, e)
            return False
        return True


class StaticLegalEntityResolver(LegalEntityResolver):
    """Trusts a fixed set of issuer identifiers."""

    def __init__(self, trusted: Iterable[str]) -> None:
        self.trusted = frozenset(trusted)

    async def is_legal_entity(self, identifier: str) -> bool:
        return identifier in self.trusted


def default_public_key_resolvers(config: VerifierConfig | None = None) -> list[PublicKeyResolver]:
    """The resolvers used when the caller does not provide a chain."""
    config = config or VerifierConfig()
    did_resolver = DIDResolver(timeout=config.timeout, verify_ssl=config.verify_ssl)
    return [
        DidKeyPublicKeyAdapter(),
        DidJwkPublicKeyAdapter(),
        DidWebPublicKeyAdapter(did_resolver),
        EbsiPublicKeyAdapter(config.did_registry_url, did_resolver),
    ]
