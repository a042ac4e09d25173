"""
Issuance builders for credentials and presentations.

The JWT builders mirror every envelope claim they set into the embedded
``vc``/``vp`` document, so tokens they produce pass attribute mapping
validation. The linked-data builders produce the same documents with an
embedded Data Integrity proof instead of an envelope.

A builder is single use: ``sign`` consumes it and any later call raises
``BuilderError``.

Example:
    token = (
        CredentialJwtBuilder()
        .set_issuer(wallet.did)
        .set_issued_at()
        .set_expiration_time("1y")
        .set_credential_subject({"id": holder_did})
        .set_subject(holder_did)
        .set_protected_header({"alg": "ES256", "kid": wallet.verification_method})
        .sign(wallet.private_jwk)
    )
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

from jwcrypto import jwk, jwt

from ssi_verifier import dates
from ssi_verifier.dates import unix_to_iso
from ssi_verifier.errors import BuilderError
from ssi_verifier.signature import create_data_integrity_proof_value

DEFAULT_SCHEMA_TYPE = "FullJsonSchemaValidator2021"
DEFAULT_CRYPTOSUITE = "ecdsa-jcs-2022"

_RELATIVE_TIME = re.compile(r"^\s*(\d+)\s*([smhdwy])\s*$")
_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
    "y": 31557600,  # 365.25 days
}


def parse_relative_time(value: str) -> int:
    """Convert ``"2h"``, ``"30d"`` or ``"1y"`` style durations to seconds.

    Raises:
        BuilderError: If the duration is not understood.
    """
    match = _RELATIVE_TIME.match(value)
    if not match:
        raise BuilderError(f"Invalid time period {value!r}")
    amount, unit = match.groups()
    return int(amount) * _UNIT_SECONDS[unit]


def _as_jwk(key: jwk.JWK | Mapping[str, Any]) -> jwk.JWK:
    if isinstance(key, jwk.JWK):
        return key
    return jwk.JWK(**dict(key))


class _DocumentBuilder:
    """Setters shared by every builder.

    ``_claims`` holds JWT envelope claims and ``_document`` the credential or
    presentation document. Linked-data builders never emit ``_claims``.
    """

    def __init__(self) -> None:
        self._claims: dict[str, Any] = {}
        self._document: dict[str, Any] = {}
        self._consumed = False

    def _ensure_open(self) -> None:
        if self._consumed:
            raise BuilderError("Builder has already been signed")

    def _set(self, claim: str | None, field: str | None, value: Any) -> None:
        self._ensure_open()
        if claim is not None:
            self._claims[claim] = value
        if field is not None:
            self._document[field] = value

    def set_context(self, context: list[str]):
        self._set(None, "@context", list(context))
        return self

    def set_type(self, types: list[str]):
        self._set(None, "type", list(types))
        return self

    def set_jti(self, jti: str):
        """Set the ``jti`` claim and the document ``id``."""
        self._set("jti", "id", jti)
        return self

    def set_issuer(self, issuer: str):
        """Set the ``iss`` claim and the document ``issuer``."""
        self._set("iss", "issuer", issuer)
        return self

    def set_audience(self, audience: str | list[str]):
        """Set the ``aud`` claim and the document ``audience``."""
        self._set("aud", "audience", audience)
        return self

    def set_issued_at(self, timestamp: int | None = None):
        """Set ``iat`` and ``nbf``, plus ``issuanceDate``, ``issued`` and ``validFrom``.

        Args:
            timestamp: Unix seconds. Defaults to now.
        """
        self._ensure_open()
        iat = int(dates.now()) if timestamp is None else int(timestamp)
        self._claims["iat"] = iat
        self._claims["nbf"] = iat
        iso = unix_to_iso(iat)
        self._document["issuanceDate"] = iso
        self._document["issued"] = iso
        self._document["validFrom"] = iso
        return self

    def set_expiration_time(self, value: int | str):
        """Set ``exp`` and ``expirationDate``.

        Args:
            value: Absolute Unix seconds, or a duration from now such as
                ``"2h"`` or ``"1y"``.
        """
        self._ensure_open()
        if isinstance(value, str):
            exp = int(dates.now()) + parse_relative_time(value)
        else:
            exp = int(value)
        self._claims["exp"] = exp
        self._document["expirationDate"] = unix_to_iso(exp)
        return self

    def set_credential_schema(self, schema_uri: str, schema_type: str = DEFAULT_SCHEMA_TYPE):
        self._set(None, "credentialSchema", {"id": schema_uri, "type": schema_type})
        return self


class _CredentialFields(_DocumentBuilder):
    def set_credential_subject(self, credential_subject: Mapping[str, Any]):
        self._set(None, "credentialSubject", dict(credential_subject))
        return self

    def set_subject(self, subject: str):
        """Set the ``sub`` claim. It must match ``credentialSubject.id``."""
        self._set("sub", None, subject)
        return self


class _PresentationFields(_DocumentBuilder):
    def set_holder(self, holder: str):
        self._set(None, "holder", holder)
        return self

    def set_verifiable_credential(self, credentials: list[Any]):
        """Embed credentials, JWT strings or linked-data documents."""
        self._set(None, "verifiableCredential", list(credentials))
        return self


class _JwtSigner:
    document_claim: str
    _claims: dict[str, Any]
    _document: dict[str, Any]
    _consumed: bool
    _header: dict[str, Any] | None = None

    def set_protected_header(self, header: Mapping[str, Any]):
        """Set the JWT protected header.

        ``typ`` defaults to ``"JWT"``.

        Raises:
            BuilderError: If ``alg`` is missing, or neither ``kid`` nor ``jwk`` is given.
        """
        self._ensure_open()
        if not header.get("alg"):
            raise BuilderError("alg is not defined on jwt header")
        if not header.get("kid") and not header.get("jwk"):
            raise BuilderError("'kid' or 'jwk' must be defined")
        self._header = {"typ": "JWT", **header}
        return self

    def sign(self, key: jwk.JWK | Mapping[str, Any]) -> str:
        """Sign and return the compact JWT, consuming the builder.

        Raises:
            BuilderError: If no protected header was set or the builder was
                already signed.
        """
        self._ensure_open()
        if self._header is None:
            raise BuilderError("Protected header must be set before signing")
        claims = dict(self._claims)
        claims[self.document_claim] = dict(self._document)
        token = jwt.JWT(header=self._header, claims=claims)
        token.make_signed_token(_as_jwk(key))
        self._consumed = True
        return token.serialize()


class _LdpSigner:
    _document: dict[str, Any]
    _consumed: bool

    def sign(
        self,
        key: jwk.JWK | Mapping[str, Any],
        verification_method: str,
        cryptosuite: str = DEFAULT_CRYPTOSUITE,
    ) -> str:
        """Add a Data Integrity proof and return the JSON document, consuming the builder.

        Raises:
            BuilderError: If the builder was already signed or the key does
                not fit the cryptosuite.
        """
        self._ensure_open()
        if not verification_method:
            raise BuilderError("verification_method is required")
        document = dict(self._document)
        try:
            proof_value = create_data_integrity_proof_value(document, _as_jwk(key), cryptosuite)
        except ValueError as e:
            raise BuilderError(str(e)) from e
        document["proof"] = {
            "type": "DataIntegrityProof",
            "cryptosuite": cryptosuite,
            "created": unix_to_iso(int(dates.now())),
            "verificationMethod": verification_method,
            "proofPurpose": "assertionMethod",
            "proofValue": proof_value,
        }
        self._consumed = True
        return json.dumps(document)


class CredentialJwtBuilder(_JwtSigner, _CredentialFields):
    """Builds a JWT Verifiable Credential."""

    document_claim = "vc"


class PresentationJwtBuilder(_JwtSigner, _PresentationFields):
    """Builds a JWT Verifiable Presentation."""

    document_claim = "vp"

    def set_nonce(self, nonce: str):
        self._set("nonce", None, nonce)
        return self


class CredentialLdpBuilder(_LdpSigner, _CredentialFields):
    """Builds a linked-data Verifiable Credential."""


class PresentationLdpBuilder(_LdpSigner, _PresentationFields):
    """Builds a linked-data Verifiable Presentation."""
