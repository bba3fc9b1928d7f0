"""Named tokens and the periodically refreshed code board built on top of them.

A token pairs a display name with a secret and its code parameters. The board
keeps the last code shown for every token and recomputes it only when the
token's time step rolls over; scheduling the refreshes is left to the caller.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Tuple

import pyotp

from ..clock import clock_utils
from ..codec import secret_utils
from ..crypto import hmac_utils
from ..crypto.hmac_utils import HmacFunction
from . import otp_utils

_logger = logging.getLogger(__name__)

PENDING_PLACEHOLDER: str = "—"
ERROR_PLACEHOLDER: str = "Error"
DEFAULT_ISSUER: str = "authcodes"


class TokenValidationError(ValueError):
    """Raised when a token cannot be built from user input."""


@dataclass
class Token:
    """Serializable description of a named secret and its code parameters."""

    name: str
    secret: str
    digits: int = otp_utils.DEFAULT_DIGITS
    period: int = otp_utils.DEFAULT_PERIOD
    encoding: str = secret_utils.BASE32
    algorithm: str = hmac_utils.DEFAULT_ALGORITHM

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Token":
        return cls(
            name=data["name"],
            secret=data["secret"],
            digits=int(data.get("digits") or otp_utils.DEFAULT_DIGITS),
            period=int(data.get("period") or otp_utils.DEFAULT_PERIOD),
            encoding=data.get("encoding") or secret_utils.BASE32,
            algorithm=data.get("algorithm") or hmac_utils.DEFAULT_ALGORITHM,
        )

    @property
    def parameters(self) -> otp_utils.CodeParameters:
        return otp_utils.CodeParameters(self.digits, self.period, self.algorithm)


def build_token(
    name: str,
    secret: str,
    digits: Optional[int] = None,
    period: Optional[int] = None,
    encoding: str = secret_utils.BASE32,
    algorithm: str = hmac_utils.DEFAULT_ALGORITHM,
) -> Token:
    """Validate form input and return a :class:`Token`.

    Missing digits or period fall back to 6 and 30 seconds.
    """

    name = (name or "").strip()
    secret = (secret or "").strip()
    if not name or not secret:
        raise TokenValidationError("Please fill both name and secret.")
    if not secret_utils.is_valid_secret(secret, encoding):
        raise TokenValidationError(f"Invalid {encoding} secret.")
    try:
        params = otp_utils.CodeParameters(
            digits or otp_utils.DEFAULT_DIGITS,
            period or otp_utils.DEFAULT_PERIOD,
            algorithm,
        ).validated()
    except ValueError as exc:
        raise TokenValidationError(str(exc)) from exc
    return Token(
        name=name,
        secret=secret,
        digits=params.digits,
        period=params.period,
        encoding=encoding.lower(),
        algorithm=params.algorithm,
    )


def generate_secret(length: int = 32) -> str:
    """Return a random Base32 secret compatible with authenticator apps."""

    return pyotp.random_base32(length=length)


def provisioning_uri(token: Token, issuer: Optional[str] = None) -> str:
    """Return the ``otpauth://totp/...`` URI an authenticator app can import."""

    key = secret_utils.decode_secret(token.secret, token.encoding)
    algorithm = hmac_utils.normalize_algorithm(token.algorithm)
    totp = pyotp.TOTP(
        secret_utils.encode_base32(key),
        digits=token.digits,
        interval=token.period,
        digest=getattr(hashlib, algorithm.lower()),
    )
    return totp.provisioning_uri(name=token.name, issuer_name=issuer or DEFAULT_ISSUER)


@dataclass
class TokenState:
    code: str = PENDING_PLACEHOLDER
    last_counter: Optional[int] = None


@dataclass
class TokenBoard:
    """Codes for a list of tokens, recomputed when their time step changes."""

    tokens: List[Token]
    hmac_fn: Optional[HmacFunction] = None
    _states: Dict[str, TokenState] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self.tokens = list(self.tokens)
        self._states = {token.name: TokenState() for token in self.tokens}

    def state(self, name: str) -> TokenState:
        return self._states[name]

    def refresh(self, now: Optional[float] = None, offset: Optional[int] = None) -> List[str]:
        """Recompute stale codes and return the names that changed.

        One clock correction is shared by every token of a refresh. A token
        that fails shows the error placeholder without stopping the others.
        """

        if now is None:
            if offset is None:
                offset = clock_utils.get_offset()
            now = clock_utils.corrected_time(offset)
        updated = []
        for token in self.tokens:
            state = self._states.setdefault(token.name, TokenState())
            try:
                counter = otp_utils.time_counter(now, token.period)
                if counter == state.last_counter:
                    continue
                state.last_counter = counter
                state.code = otp_utils.current_code(
                    token.secret,
                    token.encoding,
                    token.digits,
                    token.period,
                    token.algorithm,
                    now,
                    hmac_fn=self.hmac_fn,
                )
            except ValueError as exc:
                _logger.warning("Could not compute code for %r: %s", token.name, exc)
                state.code = ERROR_PLACEHOLDER
            updated.append(token.name)
        return updated

    def rows(self, now: float) -> List[Tuple[str, str, int]]:
        """Return ``(name, code, seconds_remaining)`` for every token."""

        result = []
        for token in self.tokens:
            state = self._states.setdefault(token.name, TokenState())
            try:
                remaining = otp_utils.seconds_remaining(token.period, now)
            except ValueError:
                remaining = 0
            result.append((token.name, state.code, remaining))
        return result