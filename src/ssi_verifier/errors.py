"""
Error codes and exceptions.

Every verification stage reports failures as one of the codes below. The
codes double as the text of ``VerificationResult.msg``.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable failure codes."""

    # Temporal / constraint
    EXPIRED = "EXPIRED"
    INVALID_NBF = "INVALID_NBF"
    INVALID_AUD = "INVALID_AUD"

    # Trust / key
    ISSUER_NOT_TRUSTED = "ISSUER_NOT_TRUSTED"
    KEY_NOT_RESOLVED = "KEY_NOT_RESOLVED"
    PUB_IMPORT_FAIL = "PUB_IMPORT_FAIL"
    JWT_VERIFY_ERR = "JWT_VERIFY_ERR"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    INVALID_VC = "INVALID_VC"

    # Envelope claim <-> document consistency
    IAT_ISSUED_MISMATCH = "IAT_ISSUED_MISMATCH"
    NBF_VALIDFROM_MISMATCH = "NBF_VALIDFROM_MISMATCH"
    NBF_ISSUANCEDATE_MISMATCH = "NBF_ISSUANCEDATE_MISMATCH"
    EXP_EXPIRATIONDATE_MISMATCH = "EXP_EXPIRATIONDATE_MISMATCH"
    JTI_ID_MISMATCH = "JTI_ID_MISMATCH"
    JTI_VPID_MISMATCH = "JTI_VPID_MISMATCH"
    ISS_ISSUER_MISMATCH = "ISS_ISSUER_MISMATCH"
    ISS_VPISSUER_MISMATCH = "ISS_VPISSUER_MISMATCH"
    SUB_CREDENTIALSUBJECTID_MISMATCH = "SUB_CREDENTIALSUBJECTID_MISMATCH"
    KID_ISSUER_MISMATCH = "KID_ISSUER_MISMATCH"

    # Schema
    MISSING_CREDENTIAL_SCHEMA = "MISSING_CREDENTIAL_SCHEMA"
    SCHEMA_TIMEOUT = "SCHEMA_TIMEOUT"
    EXT_SCHEMA_TIMEOUT = "EXT_SCHEMA_TIMEOUT"
    UNKNOWN_SCHEMA_VERSION = "UNKNOWN_SCHEMA_VERSION"
    VC_SCHEMA_VALIDATION_FAIL = "VC_SCHEMA_VALIDATION_FAIL"
    VP_SCHEMA_VALIDATION_FAIL = "VP_SCHEMA_VALIDATION_FAIL"

    # Parsing
    INVALID_CREDENTIAL_TYPE = "INVALID_CREDENTIAL_TYPE"
    INVALID_DID = "INVALID_DID"

    # 8-digit date conversion
    INVALID_DATE_LENGTH = "INVALID_DATE_LENGTH"
    INVALID_YEAR_VALUE = "INVALID_YEAR_VALUE"
    INVALID_MONTH_VALUE = "INVALID_MONTH_VALUE"
    INVALID_DAY_VALUE = "INVALID_DAY_VALUE"


class SSIError(Exception):
    """Base class for errors carrying an :class:`ErrorCode`."""

    def __init__(self, code: ErrorCode, detail: str | None = None) -> None:
        self.code = code
        self.detail = detail
        super().__init__(f"{code.value}: {detail}" if detail else code.value)


class VerificationError(SSIError):
    """Raised inside a verification stage; downgraded to a stage failure."""


class CredentialParseError(SSIError):
    """Raised when an artifact is neither a JWT nor a JSON document."""

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(ErrorCode.INVALID_CREDENTIAL_TYPE, detail)


class DateConversionError(SSIError):
    """Raised when an 8-digit date string cannot be converted."""


class BuilderError(Exception):
    """Raised when an issuance builder is used against its contract."""
