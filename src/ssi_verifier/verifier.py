"""
Verifiable Credentials and Presentations verifier.

Runs up to four independent stages against a parsed credential or
presentation, in this order:

1. Constraint validation (expiry, not-before, presentation audience)
2. Signature validation (issuer trust, key resolution, signature)
3. Attribute mapping validation (JWT claims vs. embedded document)
4. Schema validation (remote JSON Schema)

A failing stage never prevents the following ones from running. The
overall result is the AND of every stage that ran.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from ssi_verifier import dates
from ssi_verifier.adapters import default_public_key_resolvers
from ssi_verifier.config import VerifierConfig
from ssi_verifier.dates import iso_to_unix
from ssi_verifier.errors import CredentialParseError, ErrorCode, SSIError, VerificationError
from ssi_verifier.model import (
    Artifact,
    Credential,
    JwtCredential,
    JwtPresentation,
    LdpCredential,
    LdpPresentation,
    Presentation,
    as_set,
    credential_subject_id,
    issuer_id,
    parse_credential,
    parse_presentation,
)
from ssi_verifier.resolvers import (
    LegalEntityResolver,
    LegalEntityResolverChain,
    PublicKeyResolver,
    PublicKeyResolverChain,
)
from ssi_verifier.schema import SchemaValidator
from ssi_verifier.signature import (
    import_key,
    import_proof_key,
    verify_data_integrity_proof,
    verify_jws,
)

log = logging.getLogger(__name__)

STAGES = (
    "constraint_validation",
    "signature_validation",
    "attribute_mapping_validation",
    "schema_validation",
)


@dataclass(frozen=True)
class VerifyOptions:
    """Switches for the verification stages.

    ``keys`` is only used by the linked-data signature path: a public JWK,
    or a mapping holding one under ``publicKeyJwk``. When given it takes
    precedence over resolving ``proof.verificationMethod``.
    """

    constraint_validation: bool = True
    signature_validation: bool = True
    attribute_mapping_validation: bool = True
    schema_validation: bool = True
    keys: Any = None


@dataclass
class DetailedVerifyResults:
    """Per-stage outcome: True, False, or None when the stage did not run."""

    constraint_validation: bool | None = None
    signature_validation: bool | None = None
    attribute_mapping_validation: bool | None = None
    schema_validation: bool | None = None

    def to_dict(self) -> dict[str, bool | None]:
        return asdict(self)


@dataclass
class VerificationResult:
    """Complete verification result."""

    result: bool
    msg: str
    validations: DetailedVerifyResults
    errors: list[str] = field(default_factory=list)
    credential_id: str | None = None
    issuer: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.result

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.result,
            "msg": self.msg,
            "validations": self.validations.to_dict(),
            "errors": self.errors,
            "credential_id": self.credential_id,
            "issuer": self.issuer,
        }


class _Report:
    """Collects stage outcomes for one verification call."""

    def __init__(self) -> None:
        self.result = True
        self.codes: list[str] = []
        self.errors: list[str] = []
        self.validations = DetailedVerifyResults()

    def passed(self, stage: str) -> None:
        setattr(self.validations, stage, True)

    def failed(self, stage: str, message: str, detail: str | None = None) -> None:
        setattr(self.validations, stage, False)
        self.result = False
        self.codes.append(message)
        self.errors.append(f"{message}: {detail}" if detail else message)


class Verifier:
    """Verifiable Credentials and Presentations verifier.

    Resolvers are owned by the caller and tried in the order given.
    """

    def __init__(
        self,
        key_resolver: PublicKeyResolverChain | Iterable[PublicKeyResolver] | None = None,
        trust_resolver: LegalEntityResolverChain | Iterable[LegalEntityResolver] | None = None,
        schema_validator: SchemaValidator | None = None,
        config: VerifierConfig | None = None,
    ) -> None:
        """Initialize the verifier.

        Args:
            key_resolver: Public key resolver chain. Defaults to did:key,
                did:jwk, did:web and did:ebsi resolvers.
            trust_resolver: Legal entity resolver chain. Defaults to an empty
                chain, which trusts no issuer.
            schema_validator: JSON Schema validator. Created if not provided.
            config: Network settings for the default collaborators.
        """
        self.config = config or VerifierConfig()
        if key_resolver is None:
            key_resolver = default_public_key_resolvers(self.config)
        if not isinstance(key_resolver, PublicKeyResolverChain):
            key_resolver = PublicKeyResolverChain(key_resolver)
        if trust_resolver is None:
            trust_resolver = ()
        if not isinstance(trust_resolver, LegalEntityResolverChain):
            trust_resolver = LegalEntityResolverChain(trust_resolver)
        self.key_resolver = key_resolver
        self.trust_resolver = trust_resolver
        self.schema_validator = schema_validator or SchemaValidator(
            timeout=self.config.schema_timeout,
            verify_ssl=self.config.verify_ssl,
        )

    async def verify_credential(
        self,
        credential: Artifact | Credential,
        options: VerifyOptions | None = None,
    ) -> VerificationResult:
        """Verify a Verifiable Credential.

        Args:
            credential: A raw JWT / JSON artifact or an already parsed credential.
            options: Stage switches. All stages run by default.

        Raises:
            CredentialParseError: If the artifact cannot be parsed.
        """
        if not isinstance(credential, (JwtCredential, LdpCredential)):
            credential = parse_credential(credential)
        options = options or VerifyOptions()

        stages = {
            "constraint_validation": lambda: self._check_constraints(credential),
            "signature_validation": lambda: self._check_credential_signature(credential, options),
            "attribute_mapping_validation": lambda: self._check_credential_attributes(credential),
            "schema_validation": lambda: self._check_schema(
                credential, ErrorCode.VC_SCHEMA_VALIDATION_FAIL
            ),
        }
        return await self._run(credential, options, stages)

    async def verify_presentation(
        self,
        presentation: Artifact | Presentation,
        audience: str | list[str] | None,
        options: VerifyOptions | None = None,
    ) -> VerificationResult:
        """Verify a Verifiable Presentation and every credential it embeds.

        Args:
            presentation: A raw JWT / JSON artifact or an already parsed presentation.
            audience: Expected audience, a single value or a collection.
            options: Stage switches, also applied to the embedded credentials.

        Raises:
            CredentialParseError: If the artifact cannot be parsed.
        """
        if not isinstance(presentation, (JwtPresentation, LdpPresentation)):
            presentation = parse_presentation(presentation)
        options = options or VerifyOptions()

        stages = {
            "constraint_validation": lambda: self._check_constraints(presentation, audience, True),
            "signature_validation": lambda: self._check_presentation_signature(presentation, options),
            "attribute_mapping_validation": lambda: self._check_presentation_attributes(presentation),
            "schema_validation": lambda: self._check_schema(
                presentation, ErrorCode.VP_SCHEMA_VALIDATION_FAIL
            ),
        }
        return await self._run(presentation, options, stages)

    async def _run(
        self,
        model: Credential | Presentation,
        options: VerifyOptions,
        stages: Mapping[str, Callable[[], Awaitable[None]]],
    ) -> VerificationResult:
        report = _Report()
        try:
            for stage in STAGES:
                if getattr(options, stage) is True:
                    await self._run_stage(report, stage, stages[stage])
        except Exception:
            log.exception("Unexpected error while verifying %s", model.identifier)
            report.result = False

        log.info(
            "Verification of %s complete: %s",
            model.identifier,
            "SUCCESS" if report.result else "FAILURE",
        )
        return VerificationResult(
            result=report.result,
            msg=",".join(report.codes),
            validations=report.validations,
            errors=report.errors,
            credential_id=model.identifier,
            issuer=model.issuer,
        )

    async def _run_stage(
        self,
        report: _Report,
        stage: str,
        check: Callable[[], Awaitable[None]],
    ) -> None:
        try:
            await check()
        except SSIError as e:
            log.warning("%s failed: %s", stage, e)
            report.failed(stage, e.code.value, e.detail)
        except Exception as e:
            log.warning("%s failed with unexpected error: %r", stage, e)
            report.failed(stage, f"{type(e).__name__}: {e}")
        else:
            report.passed(stage)

    # ------------------------------------------------------------------
    # Constraint stage
    # ------------------------------------------------------------------

    async def _check_constraints(
        self,
        model: Credential | Presentation,
        audience: str | list[str] | None = None,
        check_audience: bool = False,
    ) -> None:
        current = dates.now()

        expires_at = model.expires_at
        if expires_at is not None and current >= expires_at:
            raise VerificationError(ErrorCode.EXPIRED, f"expired at {expires_at}")

        not_before = model.not_before
        if not_before is not None and current <= not_before:
            raise VerificationError(ErrorCode.INVALID_NBF, f"not valid before {not_before}")

        if check_audience and not _same_audience(audience, model.audience):
            raise VerificationError(
                ErrorCode.INVALID_AUD,
                f"expected {sorted(as_set(audience))}, got {sorted(as_set(model.audience))}",
            )

    # ------------------------------------------------------------------
    # Signature stage
    # ------------------------------------------------------------------

    async def _check_credential_signature(
        self,
        credential: Credential,
        options: VerifyOptions,
    ) -> None:
        issuer = credential.issuer
        if not issuer or not await self.trust_resolver.is_trusted(issuer):
            raise VerificationError(ErrorCode.ISSUER_NOT_TRUSTED, str(issuer))

        if isinstance(credential, JwtCredential):
            await self._verify_jwt_signature(credential, ErrorCode.JWT_VERIFY_ERR)
        else:
            await self._verify_proof(credential, options)

    async def _check_presentation_signature(
        self,
        presentation: Presentation,
        options: VerifyOptions,
    ) -> None:
        if isinstance(presentation, JwtPresentation):
            await self._verify_jwt_signature(presentation, ErrorCode.INVALID_SIGNATURE)
        else:
            await self._verify_proof(presentation, options)

        for index, embedded in enumerate(presentation.verifiable_credentials):
            try:
                result = await self.verify_credential(embedded, options)
            except CredentialParseError as e:
                raise VerificationError(ErrorCode.INVALID_VC, f"credential {index}: {e}") from e
            if not result.result:
                log.warning("Presentation contains an invalid credential at index %d", index)
                raise VerificationError(
                    ErrorCode.INVALID_VC, f"credential {index}: {result.msg}"
                )

    async def _verify_jwt_signature(
        self,
        model: JwtCredential | JwtPresentation,
        failure_code: ErrorCode,
    ) -> None:
        kid = model.verification_method
        if kid:
            key_data = await self.key_resolver.resolve(kid)
        elif isinstance(model.header.get("jwk"), Mapping):
            key_data = dict(model.header["jwk"])
        else:
            raise VerificationError(ErrorCode.KEY_NOT_RESOLVED, "JWT header has neither kid nor jwk")

        key = import_key(key_data, model.algorithm)
        if not verify_jws(model.raw, key, model.algorithm):
            raise VerificationError(failure_code)

    async def _verify_proof(
        self,
        model: LdpCredential | LdpPresentation,
        options: VerifyOptions,
    ) -> None:
        keys = options.keys
        if isinstance(keys, Mapping):
            key_data = dict(keys.get("publicKeyJwk", keys))
        elif model.verification_method:
            key_data = await self.key_resolver.resolve(model.verification_method)
        else:
            raise VerificationError(ErrorCode.KEY_NOT_RESOLVED, "proof has no verificationMethod")

        key = import_proof_key(key_data, model.proof.get("cryptosuite"))
        if not verify_data_integrity_proof(model.document, key):
            raise VerificationError(ErrorCode.INVALID_SIGNATURE)

    # ------------------------------------------------------------------
    # Attribute mapping stage
    # ------------------------------------------------------------------

    async def _check_credential_attributes(self, credential: Credential) -> None:
        if isinstance(credential, LdpCredential):
            _check_verification_method_issuer(credential.verification_method, credential.issuer)
            return

        payload = credential.payload
        vc = credential.document

        _check_required_claim(payload.get("iat"), iso_to_unix(vc.get("issued")),
                              ErrorCode.IAT_ISSUED_MISMATCH)

        nbf = payload.get("nbf")
        _check_required_claim(nbf, iso_to_unix(vc.get("validFrom")),
                              ErrorCode.NBF_VALIDFROM_MISMATCH)
        _check_required_claim(nbf, iso_to_unix(vc.get("issuanceDate")),
                              ErrorCode.NBF_ISSUANCEDATE_MISMATCH)

        exp = payload.get("exp")
        expiration_date = iso_to_unix(vc.get("expirationDate"))
        if exp != expiration_date:
            raise VerificationError(ErrorCode.EXP_EXPIRATIONDATE_MISMATCH)

        if payload.get("jti") != vc.get("id"):
            raise VerificationError(ErrorCode.JTI_ID_MISMATCH)

        issuer = issuer_id(vc.get("issuer"))
        if payload.get("iss") != issuer:
            raise VerificationError(ErrorCode.ISS_ISSUER_MISMATCH)

        if payload.get("sub") != credential_subject_id(vc):
            raise VerificationError(ErrorCode.SUB_CREDENTIALSUBJECTID_MISMATCH)

        _check_verification_method_issuer(credential.verification_method, issuer)

    async def _check_presentation_attributes(self, presentation: Presentation) -> None:
        if isinstance(presentation, LdpPresentation):
            if presentation.issuer is not None:
                _check_verification_method_issuer(
                    presentation.verification_method, presentation.issuer
                )
            return

        payload = presentation.payload
        vp = presentation.document

        _check_present_claim(payload.get("iat"), lambda: iso_to_unix(vp.get("issued")),
                             ErrorCode.IAT_ISSUED_MISMATCH)
        _check_present_claim(payload.get("nbf"), lambda: iso_to_unix(vp.get("validFrom")),
                             ErrorCode.NBF_VALIDFROM_MISMATCH)
        _check_present_claim(payload.get("exp"), lambda: iso_to_unix(vp.get("expirationDate")),
                             ErrorCode.EXP_EXPIRATIONDATE_MISMATCH)
        _check_present_claim(payload.get("jti"), lambda: vp.get("id"),
                             ErrorCode.JTI_VPID_MISMATCH)
        _check_present_claim(payload.get("iss"), lambda: issuer_id(vp.get("issuer")),
                             ErrorCode.ISS_VPISSUER_MISMATCH)

    # ------------------------------------------------------------------
    # Schema stage
    # ------------------------------------------------------------------

    async def _check_schema(
        self,
        model: Credential | Presentation,
        failure_code: ErrorCode,
    ) -> None:
        document = model.document
        if isinstance(model, (LdpCredential, LdpPresentation)):
            document = {k: v for k, v in document.items() if k != "proof"}
        await self.schema_validator.validate(document, failure_code)


def _check_verification_method_issuer(verification_method: str | None, issuer: str | None) -> None:
    """The DID part of the verification method must be the issuer."""
    if verification_method and verification_method.split("#")[0] != issuer:
        raise VerificationError(
            ErrorCode.KID_ISSUER_MISMATCH, f"{verification_method} is not a key of {issuer}"
        )


def _check_required_claim(claim: Any, value: Any, code: ErrorCode) -> None:
    """Compare a claim with its document field. Both must be present."""
    if claim is None or value is None or claim != value:
        raise VerificationError(code, f"{claim!r} != {value!r}")


def _same_audience(expected: str | list[str] | None, actual: str | list[str] | None) -> bool:
    """Compare audiences as sets. A single value only matches a one-element list."""
    for scalar, other in ((expected, actual), (actual, expected)):
        if isinstance(scalar, str) and not isinstance(other, str):
            if other is None or len(other) != 1:
                return False
    return as_set(expected) == as_set(actual)


def _check_present_claim(
    claim: Any,
    document_value: Callable[[], Any],
    code: ErrorCode,
) -> None:
    """Compare a claim with its document field when both are present."""
    if claim is None:
        return
    value = document_value()
    if value is not None and claim != value:
        raise VerificationError(code, f"{claim!r} != {value!r}")


def verify_credential(
    credential: Artifact,
    options: VerifyOptions | None = None,
    key_resolvers: Iterable[PublicKeyResolver] | None = None,
    trust_resolvers: Iterable[LegalEntityResolver] | None = None,
) -> VerificationResult:
    """Convenience function to verify a credential.

    Args:
        credential: The raw credential (JWT string or JSON document).
        options: Stage switches.
        key_resolvers: Ordered public key resolvers. Defaults are used if omitted.
        trust_resolvers: Ordered legal entity resolvers.

    Returns:
        VerificationResult with details of all checks.
    """
    verifier = Verifier(key_resolver=key_resolvers, trust_resolver=trust_resolvers)
    return asyncio.run(verifier.verify_credential(credential, options))


def verify_presentation(
    presentation: Artifact,
    audience: str | list[str] | None,
    options: VerifyOptions | None = None,
    key_resolvers: Iterable[PublicKeyResolver] | None = None,
    trust_resolvers: Iterable[LegalEntityResolver] | None = None,
) -> VerificationResult:
    """Convenience function to verify a presentation."""
    verifier = Verifier(key_resolver=key_resolvers, trust_resolver=trust_resolvers)
    return asyncio.run(verifier.verify_presentation(presentation, audience, options))
