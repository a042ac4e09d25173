"""
DID document resolution.

Fetches DID Documents over HTTPS for did:web and for DID registries that
serve documents at ``<registry>/<did>`` (e.g. the EBSI DID registry).
https://w3c-ccg.github.io/did-method-web/
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from ssi_verifier.resolvers import ResolverError

log = logging.getLogger(__name__)


class DIDResolutionError(ResolverError):
    """Raised when DID resolution fails."""


@dataclass
class VerificationMethod:
    """DID Document verification method."""

    id: str
    type: str
    controller: str
    public_key_jwk: dict[str, Any] | None = None


@dataclass
class DIDDocument:
    """W3C DID Document."""

    id: str
    verification_methods: list[VerificationMethod]

    def get_verification_method(self, method_id: str) -> VerificationMethod | None:
        """Get a verification method by ID.

        Relative ids (``#key-1``) in the document match absolute DID URLs.
        """
        fragment = "#" + method_id.split("#", 1)[1] if "#" in method_id else None
        for vm in self.verification_methods:
            if vm.id == method_id or (fragment and vm.id == fragment):
                return vm
        return None


def did_web_to_url(did: str) -> str:
    """Convert a did:web identifier to its resolution URL.

    did:web:example.com -> https://example.com/.well-known/did.json
    did:web:example.com:path:to:doc -> https://example.com/path/to/doc/did.json
    did:web:example.com%3A8080 -> https://example.com:8080/.well-known/did.json

    Raises:
        DIDResolutionError: If the DID format is invalid.
    """
    if not did.startswith("did:web:"):
        raise DIDResolutionError(f"Invalid did:web identifier: {did}")

    domain_path = did[8:]

    if "#" in domain_path:
        domain_path = domain_path.split("#")[0]

    parts = domain_path.split(":")

    # First part is the domain (with potential port encoded as %3A)
    domain = parts[0].replace("%3A", ":")

    if len(parts) > 1:
        path = "/" + "/".join(quote(p, safe="") for p in parts[1:]) + "/did.json"
    else:
        path = "/.well-known/did.json"

    return f"https://{domain}{path}"


class DIDResolver:
    """Fetches and parses DID Documents."""

    def __init__(
        self,
        timeout: float = 30.0,
        verify_ssl: bool = True,
    ) -> None:
        """Initialize the DID resolver.

        Args:
            timeout: HTTP request timeout in seconds.
            verify_ssl: Whether to verify SSL certificates.
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl

    async def resolve_web(self, did: str) -> DIDDocument:
        """Resolve a did:web identifier to its DID Document."""
        base_did = did.split("#")[0]
        data = await self.fetch(did_web_to_url(base_did), did)
        return self.parse_did_document(data, base_did)

    async def resolve_from_registry(self, registry_url: str, did: str) -> DIDDocument:
        """Resolve a DID through a registry serving ``<registry_url>/<did>``."""
        base_did = did.split("#")[0]
        data = await self.fetch(f"{registry_url.rstrip('/')}/{base_did}", did)
        return self.parse_did_document(data, base_did)

    async def fetch(self, url: str, did: str) -> dict[str, Any]:
        """GET a DID Document as JSON.

        Raises:
            DIDResolutionError: On HTTP, network or JSON errors.
        """
        log.debug("Fetching DID Document for %s from %s", did, url)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, verify=self.verify_ssl) as client:
                response = await client.get(
                    url,
                    headers={"Accept": "application/did+ld+json, application/json"},
                )
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPStatusError as e:
            raise DIDResolutionError(
                f"HTTP error resolving {did}: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise DIDResolutionError(f"Network error resolving {did}: {e}") from e
        except ValueError as e:
            raise DIDResolutionError(f"Invalid JSON in DID Document for {did}") from e

        if not isinstance(data, dict):
            raise DIDResolutionError(f"DID Document for {did} is not a JSON object")
        return data

    def parse_did_document(self, data: dict[str, Any], did: str) -> DIDDocument:
        """Parse a DID Document from JSON.

        Raises:
            DIDResolutionError: If the document id does not match ``did``.
        """
        doc_id = data.get("id", "")
        if doc_id != did:
            raise DIDResolutionError(
                f"DID Document id mismatch: expected {did}, got {doc_id}"
            )

        verification_methods: list[VerificationMethod] = []
        for vm_data in data.get("verificationMethod", []):
            verification_methods.append(
                VerificationMethod(
                    id=vm_data.get("id", ""),
                    type=vm_data.get("type", ""),
                    controller=vm_data.get("controller", ""),
                    public_key_jwk=vm_data.get("publicKeyJwk"),
                )
            )

        return DIDDocument(
            id=doc_id,
            verification_methods=verification_methods,
        )
