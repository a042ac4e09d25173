"""
Cryptographic capability used by the signature stage.

JWTs are verified with jwcrypto over the compact serialization. Data
Integrity proofs (ecdsa-jcs-2022, eddsa-jcs-2022) are verified with
cryptography over the JCS canonical form of the document without its proof.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature
from jwcrypto import jwk, jws
from jwcrypto.common import JWException

from ssi_verifier.encoding import b64url_decode, b64url_encode, canonicalize_json
from ssi_verifier.errors import ErrorCode, VerificationError

log = logging.getLogger(__name__)

# alg -> (kty, allowed curves or None)
ALGORITHM_KEY_TYPES: dict[str, tuple[str, frozenset[str] | None]] = {
    "ES256": ("EC", frozenset({"P-256"})),
    "ES384": ("EC", frozenset({"P-384"})),
    "ES512": ("EC", frozenset({"P-521"})),
    "ES256K": ("EC", frozenset({"secp256k1"})),
    "EdDSA": ("OKP", frozenset({"Ed25519", "Ed448"})),
    "RS256": ("RSA", None),
    "RS384": ("RSA", None),
    "RS512": ("RSA", None),
    "PS256": ("RSA", None),
    "PS384": ("RSA", None),
    "PS512": ("RSA", None),
}

SUPPORTED_CRYPTOSUITES = {"ecdsa-jcs-2022", "eddsa-jcs-2022"}
SUPPORTED_PROOF_TYPES = {"DataIntegrityProof"}

_EC_HASHES = {
    "secp256r1": hashes.SHA256,
    "secp256k1": hashes.SHA256,
    "secp384r1": hashes.SHA384,
    "secp521r1": hashes.SHA512,
}


def import_key(key_data: Mapping[str, Any], alg: str | None) -> jwk.JWK:
    """Import a JWK for use with ``alg``.

    Raises:
        VerificationError: ``PUB_IMPORT_FAIL`` if the key is malformed or
            does not fit the algorithm.
    """
    if alg not in ALGORITHM_KEY_TYPES:
        raise VerificationError(ErrorCode.PUB_IMPORT_FAIL, f"Unsupported algorithm {alg!r}")
    kty, curves = ALGORITHM_KEY_TYPES[alg]
    if key_data.get("kty") != kty:
        raise VerificationError(
            ErrorCode.PUB_IMPORT_FAIL, f"{alg} requires a {kty} key, got {key_data.get('kty')}"
        )
    if curves is not None and key_data.get("crv") not in curves:
        raise VerificationError(
            ErrorCode.PUB_IMPORT_FAIL, f"{alg} does not accept curve {key_data.get('crv')}"
        )
    try:
        return jwk.JWK(**dict(key_data))
    except (JWException, ValueError, TypeError) as e:
        raise VerificationError(ErrorCode.PUB_IMPORT_FAIL, str(e)) from e


_CURVE_ALGORITHMS = {"P-256": "ES256", "P-384": "ES384", "P-521": "ES512", "secp256k1": "ES256K"}


def import_proof_key(key_data: Mapping[str, Any], cryptosuite: str | None) -> jwk.JWK:
    """Import a JWK for a Data Integrity cryptosuite.

    Raises:
        VerificationError: ``INVALID_SIGNATURE`` for unknown cryptosuites,
            ``PUB_IMPORT_FAIL`` if the key does not fit the cryptosuite.
    """
    if cryptosuite == "eddsa-jcs-2022":
        return import_key(key_data, "EdDSA")
    if cryptosuite == "ecdsa-jcs-2022":
        return import_key(key_data, _CURVE_ALGORITHMS.get(key_data.get("crv"), "ES256"))
    raise VerificationError(ErrorCode.INVALID_SIGNATURE, f"Unsupported cryptosuite: {cryptosuite}")


def verify_jws(token: str, key: jwk.JWK, alg: str) -> bool:
    """Verify a compact JWS over its exact signed bytes.

    Returns:
        True if the signature is valid, False otherwise.
    """
    signed = jws.JWS()
    signed.allowed_algs = [alg]
    try:
        signed.deserialize(token)
        signed.verify(key, alg=alg)
    except (JWException, ValueError) as e:
        log.debug("JWS verification failed: %s", e)
        return False
    return True


def _signing_input(document: Mapping[str, Any]) -> bytes:
    unsigned = {k: v for k, v in document.items() if k != "proof"}
    return canonicalize_json(unsigned).encode("utf-8")


def verify_data_integrity_proof(document: Mapping[str, Any], key: jwk.JWK) -> bool:
    """Verify the Data Integrity proof embedded in ``document``.

    Raises:
        VerificationError: ``INVALID_SIGNATURE`` for unsupported proof
            types or cryptosuites.

    Returns:
        True if the signature is valid, False otherwise.
    """
    proof = document.get("proof") or {}
    proof_type = proof.get("type")
    if proof_type not in SUPPORTED_PROOF_TYPES:
        raise VerificationError(ErrorCode.INVALID_SIGNATURE, f"Unsupported proof type: {proof_type}")
    cryptosuite = proof.get("cryptosuite")
    if cryptosuite not in SUPPORTED_CRYPTOSUITES:
        raise VerificationError(ErrorCode.INVALID_SIGNATURE, f"Unsupported cryptosuite: {cryptosuite}")

    message = _signing_input(document)
    try:
        signature = b64url_decode(proof.get("proofValue", ""))
    except ValueError:
        return False
    public_key = key.get_op_key("verify")

    if cryptosuite == "eddsa-jcs-2022":
        if not isinstance(public_key, ed25519.Ed25519PublicKey):
            raise VerificationError(ErrorCode.INVALID_SIGNATURE, "eddsa-jcs-2022 requires an Ed25519 key")
        try:
            public_key.verify(signature, message)
        except InvalidSignature:
            return False
        return True

    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise VerificationError(ErrorCode.INVALID_SIGNATURE, "ecdsa-jcs-2022 requires an EC key")
    algorithm = ec.ECDSA(_EC_HASHES.get(public_key.curve.name, hashes.SHA256)())
    try:
        # DER encoded signature
        public_key.verify(signature, message, algorithm)
        return True
    except InvalidSignature:
        pass
    except ValueError:
        log.debug("Signature is not DER encoded, trying raw r||s")

    # Raw r||s, each half the curve size
    size = (public_key.curve.key_size + 7) // 8
    if len(signature) != 2 * size:
        return False
    r = int.from_bytes(signature[:size], byteorder="big")
    s = int.from_bytes(signature[size:], byteorder="big")
    try:
        public_key.verify(encode_dss_signature(r, s), message, algorithm)
    except InvalidSignature:
        return False
    return True


def create_data_integrity_proof_value(
    document: Mapping[str, Any],
    key: jwk.JWK,
    cryptosuite: str,
) -> str:
    """Sign the JCS form of ``document`` (its proof excluded)."""
    message = _signing_input(document)
    private_key = key.get_op_key("sign")
    if cryptosuite == "eddsa-jcs-2022":
        if not isinstance(private_key, ed25519.Ed25519PrivateKey):
            raise ValueError("eddsa-jcs-2022 requires an Ed25519 key")
        return b64url_encode(private_key.sign(message))
    if cryptosuite == "ecdsa-jcs-2022":
        if not isinstance(private_key, ec.EllipticCurvePrivateKey):
            raise ValueError("ecdsa-jcs-2022 requires an EC key")
        algorithm = ec.ECDSA(_EC_HASHES.get(private_key.curve.name, hashes.SHA256)())
        return b64url_encode(private_key.sign(message, algorithm))
    raise ValueError(f"Unsupported cryptosuite: {cryptosuite}")
