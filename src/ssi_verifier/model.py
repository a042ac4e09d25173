"""
Credential and presentation models.

An artifact is either a compact JWT whose payload embeds the credential
document under ``vc`` (``vp`` for presentations), or a linked-data JSON
document carrying an embedded ``proof``. Both cases expose the same
accessors so callers do not need to know which one they hold.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from ssi_verifier.dates import iso_to_unix
from ssi_verifier.encoding import b64url_decode
from ssi_verifier.errors import CredentialParseError

log = logging.getLogger(__name__)


def issuer_id(issuer: Any) -> str | None:
    """Extract the issuer id from a string or ``{"id": ...}`` issuer."""
    if isinstance(issuer, str):
        return issuer
    if isinstance(issuer, Mapping):
        return issuer.get("id")
    return None


def credential_subject_id(document: Mapping[str, Any]) -> str | None:
    """Return ``credentialSubject.id`` (first subject when there are several)."""
    subject = document.get("credentialSubject")
    if isinstance(subject, list):
        subject = subject[0] if subject else None
    if isinstance(subject, Mapping):
        return subject.get("id")
    return None


def as_set(value: str | list[str] | tuple[str, ...] | None) -> frozenset[str]:
    """Normalize a single value or a collection of values to a set."""
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset({value})
    return frozenset(value)


class _JwtAccessors:
    """Accessors shared by the JWT credential and presentation cases."""

    raw: str
    header: dict[str, Any]
    payload: dict[str, Any]
    document_claim: str

    @property
    def document(self) -> dict[str, Any]:
        return self.payload[self.document_claim]

    @property
    def issuer(self) -> str | None:
        return self.payload.get("iss")

    @property
    def subject(self) -> str | None:
        return self.payload.get("sub")

    @property
    def audience(self) -> str | list[str] | None:
        return self.payload.get("aud")

    @property
    def identifier(self) -> str | None:
        return self.payload.get("jti")

    @property
    def issued_at(self) -> int | None:
        return self.payload.get("iat")

    @property
    def expires_at(self) -> int | None:
        return self.payload.get("exp")

    @property
    def not_before(self) -> int | None:
        return self.payload.get("nbf")

    @property
    def algorithm(self) -> str | None:
        return self.header.get("alg")

    @property
    def verification_method(self) -> str | None:
        return self.header.get("kid")


class _LdpAccessors:
    """Accessors shared by the linked-data credential and presentation cases."""

    document: dict[str, Any]

    @property
    def raw(self) -> dict[str, Any]:
        return self.document

    @property
    def proof(self) -> dict[str, Any]:
        return self.document.get("proof") or {}

    @property
    def issuer(self) -> str | None:
        return issuer_id(self.document.get("issuer"))

    @property
    def audience(self) -> str | list[str] | None:
        return self.document.get("audience")

    @property
    def identifier(self) -> str | None:
        return self.document.get("id")

    @property
    def issued_at(self) -> int | None:
        doc = self.document
        return iso_to_unix(doc.get("issuanceDate") or doc.get("validFrom") or doc.get("issued"))

    @property
    def expires_at(self) -> int | None:
        return iso_to_unix(self.document.get("expirationDate") or self.document.get("validUntil"))

    @property
    def not_before(self) -> int | None:
        return iso_to_unix(self.document.get("validFrom"))

    @property
    def verification_method(self) -> str | None:
        return self.proof.get("verificationMethod")


@dataclass(frozen=True)
class JwtCredential(_JwtAccessors):
    """Credential carried in a JWT envelope."""

    raw: str
    header: dict[str, Any]
    payload: dict[str, Any]
    signature: str
    document_claim = "vc"


@dataclass(frozen=True)
class LdpCredential(_LdpAccessors):
    """Credential carried as a linked-data document with an embedded proof."""

    document: dict[str, Any]

    @property
    def subject(self) -> str | None:
        return credential_subject_id(self.document)


def _embedded_credentials(document: Mapping[str, Any]) -> tuple[Any, ...]:
    credentials = document.get("verifiableCredential")
    if credentials is None:
        return ()
    if isinstance(credentials, (list, tuple)):
        return tuple(credentials)
    return (credentials,)


@dataclass(frozen=True)
class JwtPresentation(_JwtAccessors):
    """Presentation carried in a JWT envelope."""

    raw: str
    header: dict[str, Any]
    payload: dict[str, Any]
    signature: str
    document_claim = "vp"

    @property
    def verifiable_credentials(self) -> tuple[Any, ...]:
        return _embedded_credentials(self.document)

    @property
    def holder(self) -> str | None:
        return self.document.get("holder")

    @property
    def nonce(self) -> str | None:
        return self.payload.get("nonce")


@dataclass(frozen=True)
class LdpPresentation(_LdpAccessors):
    """Presentation carried as a linked-data document with an embedded proof."""

    document: dict[str, Any]

    @property
    def verifiable_credentials(self) -> tuple[Any, ...]:
        return _embedded_credentials(self.document)

    @property
    def holder(self) -> str | None:
        return self.document.get("holder")

    @property
    def subject(self) -> str | None:
        return self.holder


Credential = Union[JwtCredential, LdpCredential]
Presentation = Union[JwtPresentation, LdpPresentation]
Artifact = Union[str, bytes, Mapping[str, Any]]


def _decode_segment(segment: str) -> dict[str, Any]:
    value = json.loads(b64url_decode(segment))
    if not isinstance(value, dict):
        raise ValueError("JWT segment is not a JSON object")
    return value


def _parse_jwt(token: str, claim: str) -> tuple[dict[str, Any], dict[str, Any], str]:
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError("A compact JWT has three segments")
    header = _decode_segment(parts[0])
    if header.get("typ") != "JWT":
        raise ValueError(f"JWT header typ is {header.get('typ')!r}")
    payload = _decode_segment(parts[1])
    if not isinstance(payload.get(claim), dict):
        raise ValueError(f"JWT payload has no {claim!r} object")
    return header, payload, parts[2]


def _parse(artifact: Artifact, claim: str) -> tuple[str, Any]:
    """Return ``("jwt", (token, header, payload, signature))`` or ``("ldp", document)``."""
    if isinstance(artifact, Mapping):
        return "ldp", copy.deepcopy(dict(artifact))
    if isinstance(artifact, bytes):
        try:
            artifact = artifact.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CredentialParseError("Artifact is not UTF-8 text") from e
    if not isinstance(artifact, str):
        raise CredentialParseError(f"Unsupported artifact type {type(artifact).__name__}")

    token = artifact.strip()
    try:
        header, payload, signature = _parse_jwt(token, claim)
        return "jwt", (token, header, payload, signature)
    except ValueError as e:
        log.debug("Artifact is not a JWT (%s), trying JSON document", e)

    try:
        document = json.loads(token)
    except ValueError as e:
        raise CredentialParseError("Artifact is neither a JWT nor a JSON document") from e
    if not isinstance(document, dict):
        raise CredentialParseError("JSON artifact is not an object")
    return "ldp", document


def parse_credential(artifact: Artifact) -> Credential:
    """Parse a credential artifact.

    Raises:
        CredentialParseError: ``INVALID_CREDENTIAL_TYPE`` if the artifact is
            neither a JWT VC nor a JSON document.
    """
    kind, value = _parse(artifact, "vc")
    if kind == "jwt":
        token, header, payload, signature = value
        return JwtCredential(raw=token, header=header, payload=payload, signature=signature)
    return LdpCredential(document=value)


def parse_presentation(artifact: Artifact) -> Presentation:
    """Parse a presentation artifact.

    Raises:
        CredentialParseError: ``INVALID_CREDENTIAL_TYPE`` if the artifact is
            neither a JWT VP nor a JSON document.
    """
    kind, value = _parse(artifact, "vp")
    if kind == "jwt":
        token, header, payload, signature = value
        return JwtPresentation(raw=token, header=header, payload=payload, signature=signature)
    return LdpPresentation(document=value)
