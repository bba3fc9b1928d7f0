"""Keyed-hash primitive used by the OTP generator.

The generator never calls a crypto library directly. It receives an
``HmacFunction`` taking ``(algorithm, key, message)`` and returning the digest,
so tests can inject a deterministic fake. :func:`compute_hmac` is the default
implementation backed by ``cryptography``.
"""

from __future__ import annotations

from typing import Callable, Dict

from cryptography.hazmat.primitives import constant_time, hashes
from cryptography.hazmat.primitives import hmac

HmacFunction = Callable[[str, bytes, bytes], bytes]

SHA1: str = "SHA1"
SHA256: str = "SHA256"
SHA512: str = "SHA512"
DEFAULT_ALGORITHM: str = SHA1

_HASHES: Dict[str, Callable[[], hashes.HashAlgorithm]] = {
    SHA1: hashes.SHA1,
    SHA256: hashes.SHA256,
    SHA512: hashes.SHA512,
}


class UnsupportedAlgorithmError(ValueError):
    """Raised when an HMAC hash algorithm other than SHA-1/256/512 is requested."""


def normalize_algorithm(algorithm: str) -> str:
    """Map spellings such as ``sha-256`` or ``SHA256`` onto ``SHA256``."""

    if not algorithm:
        return DEFAULT_ALGORITHM
    name = algorithm.replace("-", "").replace("_", "").upper()
    if name not in _HASHES:
        raise UnsupportedAlgorithmError(
            f"Unsupported algorithm {algorithm!r}. Choose SHA1, SHA256 or SHA512."
        )
    return name


def compute_hmac(algorithm: str, key: bytes, message: bytes) -> bytes:
    """Return ``HMAC(algorithm, key, message)`` as raw digest bytes."""

    hash_factory = _HASHES[normalize_algorithm(algorithm)]
    mac = hmac.HMAC(key, hash_factory())
    mac.update(message)
    return mac.finalize()


def constant_time_equal(left: str, right: str) -> bool:
    """Compare two codes without leaking the position of the first mismatch."""

    return constant_time.bytes_eq(left.encode("utf-8"), right.encode("utf-8"))
