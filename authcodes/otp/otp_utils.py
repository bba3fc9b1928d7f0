"""HOTP and TOTP code generation (RFC 4226 / RFC 6238).

The functions here are pure: they take key bytes and parameters and return the
code string. The only exception is :func:`totp` called without a timestamp,
which asks the clock reconciler for the current offset first.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from ..clock import clock_utils
from ..codec import secret_utils
from ..crypto import hmac_utils
from ..crypto.hmac_utils import HmacFunction

_logger = logging.getLogger(__name__)

DEFAULT_DIGITS: int = 6
DEFAULT_PERIOD: int = 30
MIN_DIGITS: int = 6
# The truncated value is at most 2**31 - 1, which has only ten digits and a
# first digit of 0, 1 or 2. Ten or more digits would not be uniform.
MAX_DIGITS: int = 9
COUNTER_BYTES: int = 8
MAX_COUNTER: int = 2 ** (8 * COUNTER_BYTES) - 1


class InvalidDigitsError(ValueError):
    """Raised for a digit count outside ``MIN_DIGITS``..``MAX_DIGITS``."""


class InvalidPeriodError(ValueError):
    """Raised when the TOTP time step is not a positive number of seconds."""


class InvalidCounterError(ValueError):
    """Raised when a counter does not fit in an unsigned 64-bit integer."""


@dataclass(frozen=True)
class CodeParameters:
    """Digit count, time step and hash algorithm shared by a secret's codes."""

    digits: int = DEFAULT_DIGITS
    period: int = DEFAULT_PERIOD
    algorithm: str = hmac_utils.DEFAULT_ALGORITHM

    def validated(self) -> "CodeParameters":
        return CodeParameters(
            digits=validate_digits(self.digits),
            period=validate_period(self.period),
            algorithm=hmac_utils.normalize_algorithm(self.algorithm),
        )


def validate_digits(digits: int) -> int:
    if isinstance(digits, bool) or not isinstance(digits, int):
        raise InvalidDigitsError(f"Digits must be an integer, got {digits!r}.")
    if not MIN_DIGITS <= digits <= MAX_DIGITS:
        raise InvalidDigitsError(f"Digits must be between {MIN_DIGITS} and {MAX_DIGITS}, got {digits}.")
    return digits


def validate_period(period: int) -> int:
    if isinstance(period, bool) or not isinstance(period, (int, float)):
        raise InvalidPeriodError(f"Period must be a number of seconds, got {period!r}.")
    if not math.isfinite(period):
        raise InvalidPeriodError(f"Period must be a finite number of seconds, got {period}.")
    if period <= 0:
        raise InvalidPeriodError(f"Period must be greater than zero, got {period}.")
    return period


def counter_to_bytes(counter: int) -> bytes:
    """Serialize a counter as the 8-byte big-endian HMAC message."""

    if isinstance(counter, bool) or not isinstance(counter, int):
        raise InvalidCounterError(f"Counter must be an integer, got {counter!r}.")
    if not 0 <= counter <= MAX_COUNTER:
        raise InvalidCounterError(f"Counter {counter} does not fit in an unsigned 64-bit integer.")
    return counter.to_bytes(COUNTER_BYTES, "big")


def dynamic_truncate(digest: bytes) -> int:
    """Select the 31-bit value RFC 4226 derives from an HMAC digest.

    The low nibble of the last byte picks a 4-byte window. The top bit of the
    window is cleared so the result is non-negative.
    """

    offset = digest[-1] & 0x0F
    if len(digest) < offset + 4:
        raise ValueError(f"Digest of {len(digest)} bytes is too short for truncation at offset {offset}.")
    return (
        (digest[offset] & 0x7F) << 24
        | digest[offset + 1] << 16
        | digest[offset + 2] << 8
        | digest[offset + 3]
    )


def hotp(
    key: bytes,
    counter: int,
    digits: int = DEFAULT_DIGITS,
    algorithm: str = hmac_utils.DEFAULT_ALGORITHM,
    *,
    hmac_fn: Optional[HmacFunction] = None,
) -> str:
    """Return the HOTP code for ``counter`` as a zero-padded digit string."""

    digits = validate_digits(digits)
    algorithm = hmac_utils.normalize_algorithm(algorithm)
    message = counter_to_bytes(counter)
    digest = (hmac_fn or hmac_utils.compute_hmac)(algorithm, bytes(key), message)
    code = dynamic_truncate(digest) % 10**digits
    return str(code).zfill(digits)


def time_counter(timestamp: float, period: int = DEFAULT_PERIOD) -> int:
    """Return the number of whole ``period`` steps elapsed at ``timestamp``."""

    period = validate_period(period)
    return int(timestamp // period)


def seconds_remaining(period: int, timestamp: float) -> int:
    """Seconds left before the code for ``timestamp`` rolls over."""

    period = validate_period(period)
    return int(period - (int(timestamp) % period))


def totp(
    key: bytes,
    digits: int = DEFAULT_DIGITS,
    period: int = DEFAULT_PERIOD,
    algorithm: str = hmac_utils.DEFAULT_ALGORITHM,
    timestamp: Optional[float] = None,
    *,
    offset: Optional[int] = None,
    hmac_fn: Optional[HmacFunction] = None,
) -> str:
    """Return the TOTP code at ``timestamp`` (Unix seconds).

    Without a timestamp the current time is used, corrected by ``offset``. When
    no offset is given either, the clock reconciler is asked for one.
    """

    period = validate_period(period)
    if timestamp is None:
        if offset is None:
            offset = clock_utils.get_offset()
        timestamp = clock_utils.corrected_time(offset)
    return hotp(key, time_counter(timestamp, period), digits, algorithm, hmac_fn=hmac_fn)


def current_code(
    secret: str,
    encoding: str = secret_utils.BASE32,
    digits: int = DEFAULT_DIGITS,
    period: int = DEFAULT_PERIOD,
    algorithm: str = hmac_utils.DEFAULT_ALGORITHM,
    timestamp: Optional[float] = None,
    *,
    offset: Optional[int] = None,
    hmac_fn: Optional[HmacFunction] = None,
) -> str:
    """Decode ``secret`` and return its TOTP code for now (or ``timestamp``)."""

    key = secret_utils.decode_secret(secret, encoding)
    return totp(key, digits, period, algorithm, timestamp, offset=offset, hmac_fn=hmac_fn)


def verify_code(
    key: bytes,
    code: str,
    params: CodeParameters = CodeParameters(),
    timestamp: Optional[float] = None,
    *,
    valid_window: int = 1,
    offset: int = 0,
) -> bool:
    """Check ``code`` against the steps around ``timestamp``.

    A small ``valid_window`` tolerates the previous/next step for clock skew.
    The code itself is never logged.
    """

    code = code.strip()
    if len(code) != params.digits or not code.isdigit():
        return False
    if timestamp is None:
        timestamp = clock_utils.corrected_time(offset)
    counter = time_counter(timestamp, params.period)
    for step in range(counter - valid_window, counter + valid_window + 1):
        if step < 0:
            continue
        if hmac_utils.constant_time_equal(hotp(key, step, params.digits, params.algorithm), code):
            return True
    _logger.debug("Code rejected around counter %d", counter)
    return False
