"""Best-effort correction of the local clock against an external time source.

TOTP codes are only as good as the clock that derives them. The reconciler
asks an HTTP time service once, compares its answer with the local clock and
returns the difference in whole seconds. It never raises: when the service is
unreachable or answers nonsense, the correction simply is not applied and the
local clock is trusted.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import requests

_logger = logging.getLogger(__name__)

DEFAULT_TIME_SOURCE_URL: str = "https://worldtimeapi.org/api/ip"
DEFAULT_TIMEOUT_SECONDS: float = 5.0
TIME_URL_ENV: str = "AUTHCODES_TIME_URL"
TIME_TIMEOUT_ENV: str = "AUTHCODES_TIME_TIMEOUT"
_DATETIME_FIELDS = ("datetime", "utc_datetime")


@dataclass(frozen=True)
class ClockCorrection:
    """Signed offset (authoritative minus local) and whether it was measured."""

    offset: int = 0
    applied: bool = False
    source: Optional[str] = None


class TimeSourceError(Exception):
    """Raised internally when the time service answer cannot be used."""


def configured_time_url() -> str:
    return os.environ.get(TIME_URL_ENV) or DEFAULT_TIME_SOURCE_URL


def configured_timeout() -> float:
    raw = os.environ.get(TIME_TIMEOUT_ENV)
    if not raw:
        return DEFAULT_TIMEOUT_SECONDS
    try:
        return float(raw)
    except ValueError:
        _logger.warning("Ignoring non-numeric %s=%r", TIME_TIMEOUT_ENV, raw)
        return DEFAULT_TIMEOUT_SECONDS


def parse_authoritative_time(payload: dict) -> datetime:
    """Extract the ISO-8601 timestamp from a time service JSON answer.

    A value without a UTC offset is taken to be UTC.
    """

    if not isinstance(payload, dict):
        raise TimeSourceError("Time service answer is not a JSON object.")
    for field in _DATETIME_FIELDS:
        value = payload.get(field)
        if value:
            break
    else:
        raise TimeSourceError("Time service answer has no datetime field.")
    try:
        moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise TimeSourceError(f"Unparsable datetime {value!r}.") from exc
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def reconcile_clock(
    url: Optional[str] = None,
    *,
    timeout: Optional[float] = None,
    clock: Callable[[], float] = time.time,
) -> ClockCorrection:
    """Query the time source once and return the measured correction.

    Every failure (connection error, timeout, HTTP error status, malformed
    body) is logged and turned into an unapplied zero correction.
    """

    url = url or configured_time_url()
    timeout = configured_timeout() if timeout is None else timeout
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        authoritative = parse_authoritative_time(response.json())
    except Exception as exc:  # requests, JSON and parsing errors all degrade the same way
        _logger.warning("Clock correction from %s unavailable, using local time: %s", url, exc)
        return ClockCorrection(offset=0, applied=False, source=url)

    authoritative_ms = int(authoritative.timestamp() * 1000)
    local_ms = int(clock() * 1000)
    offset = (authoritative_ms - local_ms) // 1000
    _logger.debug("Clock offset from %s is %d s", url, offset)
    return ClockCorrection(offset=offset, applied=True, source=url)


def get_offset(url: Optional[str] = None, *, timeout: Optional[float] = None) -> int:
    """Return the clock offset in seconds, ``0`` when it cannot be measured."""

    return reconcile_clock(url, timeout=timeout).offset


def corrected_time(offset: int, clock: Callable[[], float] = time.time) -> float:
    return clock() + offset
