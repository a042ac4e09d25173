"""
Verifier configuration.

Defaults can be overridden from the environment (``SSI_VERIFIER_*``) and
by constructor arguments or CLI options.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

EBSI_DID_REGISTRY_URL = "https://api-pilot.ebsi.eu/did-registry/v4/identifiers"
EBSI_TRUSTED_ISSUERS_REGISTRY_URL = "https://api-pilot.ebsi.eu/trusted-issuers-registry/v4/issuers"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class VerifierConfig:
    """Network settings for resolvers and schema fetching.

    Attributes:
        timeout: HTTP timeout in seconds for DID and trust registry lookups.
        schema_timeout: HTTP timeout in seconds for JSON Schema fetches.
        verify_ssl: Whether to verify SSL certificates.
        did_registry_url: Base URL of the EBSI DID registry.
        trusted_issuers_registry_url: Base URL of the EBSI trusted issuers registry.
    """

    timeout: float = 30.0
    schema_timeout: float = 5.0
    verify_ssl: bool = True
    did_registry_url: str = EBSI_DID_REGISTRY_URL
    trusted_issuers_registry_url: str = EBSI_TRUSTED_ISSUERS_REGISTRY_URL

    @classmethod
    def from_env(cls) -> VerifierConfig:
        """Build a config from ``SSI_VERIFIER_*`` environment variables."""
        return cls(
            timeout=float(os.getenv("SSI_VERIFIER_TIMEOUT", cls.timeout)),
            schema_timeout=float(os.getenv("SSI_VERIFIER_SCHEMA_TIMEOUT", cls.schema_timeout)),
            verify_ssl=_env_bool("SSI_VERIFIER_VERIFY_SSL", cls.verify_ssl),
            did_registry_url=os.getenv("SSI_VERIFIER_DID_REGISTRY_URL", cls.did_registry_url),
            trusted_issuers_registry_url=os.getenv(
                "SSI_VERIFIER_TIR_URL", cls.trusted_issuers_registry_url
            ),
        )
