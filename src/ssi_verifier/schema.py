"""
JSON Schema validation of credential and presentation documents.

The schema referenced by ``credentialSchema.id`` is fetched over HTTP and
its ``$schema`` dialect selects the validator (2020-12, 2019-09 or
draft-07). External schemas reached through ``allOf``/``$ref`` are fetched
and registered before validation; at each level only the first ``$ref``
found in ``allOf`` is followed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import urljoin

import httpx
from jsonschema import Draft7Validator, Draft201909Validator, Draft202012Validator
from referencing import Registry, Resource
from referencing.exceptions import Unresolvable
from referencing.jsonschema import DRAFT7, DRAFT201909, DRAFT202012

from ssi_verifier.errors import ErrorCode, VerificationError

log = logging.getLogger(__name__)

SCHEMA_FETCH_TIMEOUT = 5.0

DIALECTS = {
    "https://json-schema.org/draft/2020-12/schema": (Draft202012Validator, DRAFT202012),
    "https://json-schema.org/draft/2019-09/schema": (Draft201909Validator, DRAFT201909),
    "http://json-schema.org/draft-07/schema#": (Draft7Validator, DRAFT7),
}


def credential_schema_id(document: Mapping[str, Any]) -> str | None:
    """Return ``credentialSchema.id`` (first entry when a list is given)."""
    schema = document.get("credentialSchema")
    if isinstance(schema, list):
        schema = schema[0] if schema else None
    if isinstance(schema, Mapping):
        return schema.get("id") or None
    return None


def _first_ref(schema: Mapping[str, Any]) -> str | None:
    for element in schema.get("allOf", []):
        if isinstance(element, Mapping) and isinstance(element.get("$ref"), str):
            return element["$ref"]
    return None


class SchemaValidator:
    """Fetches a document's JSON Schema and validates the document against it."""

    def __init__(
        self,
        timeout: float = SCHEMA_FETCH_TIMEOUT,
        verify_ssl: bool = True,
    ) -> None:
        """Initialize the validator.

        Args:
            timeout: HTTP timeout in seconds for every schema fetch.
            verify_ssl: Whether to verify SSL certificates.
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl

    async def validate(self, document: Mapping[str, Any], failure_code: ErrorCode) -> None:
        """Validate ``document`` against its referenced schema.

        Args:
            document: The credential or presentation document.
            failure_code: ``VC_SCHEMA_VALIDATION_FAIL`` or ``VP_SCHEMA_VALIDATION_FAIL``.

        Raises:
            VerificationError: With ``MISSING_CREDENTIAL_SCHEMA``,
                ``SCHEMA_TIMEOUT``, ``EXT_SCHEMA_TIMEOUT``,
                ``UNKNOWN_SCHEMA_VERSION`` or ``failure_code``.
        """
        schema_uri = credential_schema_id(document)
        if not schema_uri:
            raise VerificationError(ErrorCode.MISSING_CREDENTIAL_SCHEMA)

        async with httpx.AsyncClient(timeout=self.timeout, verify=self.verify_ssl) as client:
            schema = await self._fetch(client, schema_uri, ErrorCode.SCHEMA_TIMEOUT)

            dialect = schema.get("$schema")
            if dialect not in DIALECTS:
                log.warning("Unknown JSON Schema version %r in %s", dialect, schema_uri)
                raise VerificationError(ErrorCode.UNKNOWN_SCHEMA_VERSION, str(dialect))
            validator_cls, specification = DIALECTS[dialect]

            resources = [(schema_uri, Resource.from_contents(schema, default_specification=specification))]
            seen = {schema_uri}
            current, current_uri = schema, schema_uri
            while isinstance(current, Mapping) and "allOf" in current:
                ref = _first_ref(current)
                if ref is None:
                    break
                ext_uri = urljoin(current_uri, ref)
                if ext_uri in seen:
                    break
                seen.add(ext_uri)
                ext_schema = await self._fetch(client, ext_uri, ErrorCode.EXT_SCHEMA_TIMEOUT)
                resource = Resource.from_contents(ext_schema, default_specification=specification)
                resources.append((ext_uri, resource))
                if ref != ext_uri:
                    resources.append((ref, resource))
                current, current_uri = ext_schema, ext_uri

        registry = Registry().with_resources(resources)
        validator = validator_cls(
            schema,
            registry=registry,
            format_checker=validator_cls.FORMAT_CHECKER,
        )
        try:
            messages = [error.message for error in validator.iter_errors(document)]
        except Unresolvable as e:
            # only the first $ref of each allOf level is registered
            raise VerificationError(failure_code, f"Unresolvable schema reference: {e}") from e
        if messages:
            detail = ",".join(messages)
            log.warning("Document failed JSON Schema validation against %s: %s", schema_uri, detail)
            raise VerificationError(failure_code, detail)

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        url: str,
        code: ErrorCode,
    ) -> dict[str, Any]:
        """GET a schema document.

        Raises:
            VerificationError: With ``code`` on any fetch or decoding failure.
        """
        log.debug("Fetching JSON Schema %s", url)
        try:
            response = await client.get(url, headers={"Accept": "application/schema+json, application/json"})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise VerificationError(code, f"HTTP {e.response.status_code} fetching {url}") from e
        except httpx.HTTPError as e:
            raise VerificationError(code, f"Error fetching {url}: {e}") from e
        except ValueError as e:
            raise VerificationError(code, f"Invalid JSON in schema {url}") from e

        if not isinstance(data, dict):
            raise VerificationError(code, f"Schema {url} is not a JSON object")
        return data
