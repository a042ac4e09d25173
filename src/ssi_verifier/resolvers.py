"""
Resolver interfaces and resolver chains.

A chain owns an ordered list of resolvers. Every resolver is started
concurrently, but the answer is picked in registration order: the first
registered resolver that succeeds wins, not the first one to finish.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from ssi_verifier.errors import ErrorCode, VerificationError

log = logging.getLogger(__name__)


class ResolverError(Exception):
    """Raised when a resolver cannot produce an answer."""


class UnsupportedDIDMethodError(ResolverError):
    """Raised when a verification method is outside a resolver's scope."""

    def __init__(self, method: str, resolver: str) -> None:
        self.method = method
        super().__init__(f'DID method "{method}" is not supported by {resolver}')


def did_method(verification_method: str) -> str:
    """Return the method name of a DID URL (``did:key:z..#k`` -> ``key``)."""
    parts = verification_method.split(":")
    if len(parts) < 3 or parts[0] != "did":
        return ""
    return parts[1]


class PublicKeyResolver(ABC):
    """Maps a verification method to a public key in JWK form."""

    @abstractmethod
    async def get_public_key_jwk(self, verification_method: str) -> dict[str, Any]:
        """Resolve a verification method.

        For JWTs the verification method is the header ``kid``; for
        linked-data documents it is ``proof.verificationMethod``.

        Raises:
            UnsupportedDIDMethodError: If the DID method is out of scope.
            ResolverError: If the lookup fails.
        """


class LegalEntityResolver(ABC):
    """Answers whether an identifier is a recognized legal entity."""

    @abstractmethod
    async def is_legal_entity(self, identifier: str) -> bool:
        """Return True if the identifier is listed in the trust registry."""


class PublicKeyResolverChain:
    """Ordered collection of :class:`PublicKeyResolver` behind one lookup."""

    def __init__(self, resolvers: Iterable[PublicKeyResolver] = ()) -> None:
        self._resolvers: list[PublicKeyResolver] = list(resolvers)

    def add(self, resolver: PublicKeyResolver) -> PublicKeyResolverChain:
        self._resolvers.append(resolver)
        return self

    def __len__(self) -> int:
        return len(self._resolvers)

    async def resolve(self, verification_method: str) -> dict[str, Any]:
        """Resolve a verification method through every registered resolver.

        Returns:
            The key of the first resolver (in registration order) that
            returned a non-empty JWK.

        Raises:
            VerificationError: ``KEY_NOT_RESOLVED`` if no resolver succeeded.
        """
        results = await asyncio.gather(
            *(r.get_public_key_jwk(verification_method) for r in self._resolvers),
            return_exceptions=True,
        )
        for resolver, result in zip(self._resolvers, results):
            name = type(resolver).__name__
            if isinstance(result, UnsupportedDIDMethodError):
                log.debug("%s skipped %s: %s", name, verification_method, result)
                continue
            if isinstance(result, BaseException):
                log.warning("%s failed to resolve %s: %s", name, verification_method, result)
                continue
            if result:
                log.debug("Resolved %s with %s", verification_method, name)
                return result

        raise VerificationError(
            ErrorCode.KEY_NOT_RESOLVED,
            f"Couldn't resolve the public key for {verification_method}",
        )


class LegalEntityResolverChain:
    """Ordered collection of :class:`LegalEntityResolver`.

    Only the first registered resolver's answer counts. Every resolver is
    still queried; the others are informational.
    """

    def __init__(self, resolvers: Iterable[LegalEntityResolver] = ()) -> None:
        self._resolvers: list[LegalEntityResolver] = list(resolvers)

    def add(self, resolver: LegalEntityResolver) -> LegalEntityResolverChain:
        self._resolvers.append(resolver)
        return self

    def __len__(self) -> int:
        return len(self._resolvers)

    async def is_trusted(self, identifier: str) -> bool:
        """Return the first registered resolver's answer for ``identifier``.

        An empty chain, or an error raised by the first resolver, is
        treated as "not trusted".
        """
        if not self._resolvers:
            log.warning("No legal entity resolver registered, %s is not trusted", identifier)
            return False

        results = await asyncio.gather(
            *(r.is_legal_entity(identifier) for r in self._resolvers),
            return_exceptions=True,
        )
        first = results[0]
        if isinstance(first, BaseException):
            log.warning(
                "%s failed for %s: %s", type(self._resolvers[0]).__name__, identifier, first
            )
            return False
        return first is True
