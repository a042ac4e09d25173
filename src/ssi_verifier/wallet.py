"""
Natural person wallet: a single key pair identified by a did:key.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from jwcrypto import jwk

from ssi_verifier.adapters import did_key_from_jwk

# alg -> jwk.JWK.generate parameters
KEY_GENERATION_PARAMS: dict[str, dict[str, Any]] = {
    "ES256": {"kty": "EC", "crv": "P-256"},
    "ES256K": {"kty": "EC", "crv": "secp256k1"},
    "EdDSA": {"kty": "OKP", "crv": "Ed25519"},
    "RS256": {"kty": "RSA", "size": 2048},
}


@dataclass(frozen=True)
class NaturalPersonWallet:
    """Key pair plus the identifiers derived from its public key."""

    alg: str
    private_jwk: dict[str, Any]
    public_jwk: dict[str, Any]
    did: str

    @property
    def verification_method(self) -> str:
        """Verification method id, ``<did>#<method-specific id>``."""
        return f"{self.did}#{self.did.split(':')[2]}"

    @property
    def key(self) -> jwk.JWK:
        """The private key as a jwcrypto key, ready for signing."""
        return jwk.JWK(**self.private_jwk)

    @classmethod
    def create(cls, alg: str = "ES256") -> NaturalPersonWallet:
        """Generate a new key pair for ``alg``.

        Raises:
            ValueError: If the algorithm is not supported.
        """
        if alg not in KEY_GENERATION_PARAMS:
            raise ValueError(f"Unsupported algorithm: {alg}")
        key = jwk.JWK.generate(**KEY_GENERATION_PARAMS[alg])
        return cls.from_key(key.export_private(as_dict=True), alg)

    @classmethod
    def from_key(cls, private_jwk: Mapping[str, Any], alg: str) -> NaturalPersonWallet:
        """Restore a wallet from an existing private JWK."""
        key = jwk.JWK(**dict(private_jwk))
        if not key.has_private:
            raise ValueError("A private key is required")
        public_jwk = key.export_public(as_dict=True)
        return cls(
            alg=alg,
            private_jwk=key.export_private(as_dict=True),
            public_jwk=public_jwk,
            did=did_key_from_jwk(public_jwk),
        )
