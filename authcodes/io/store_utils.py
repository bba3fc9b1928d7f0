"""JSON persistence of the token list used by the command-line tool."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from ..otp.token_utils import Token

_logger = logging.getLogger(__name__)

STORE_ENV: str = "AUTHCODES_STORE"
DEFAULT_STORE_PATH: Path = Path("~/.authcodes/tokens.json")


class DuplicateTokenError(ValueError):
    """Raised when a token name is already taken in the store."""


def default_store_path() -> Path:
    return Path(os.environ.get(STORE_ENV) or DEFAULT_STORE_PATH).expanduser()


def load_tokens(path: Path | str) -> List[Token]:
    """Return the stored tokens; a missing file is an empty list."""

    source = Path(path)
    if not source.exists():
        return []
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Token store {source} is not valid JSON.") from exc
    if not isinstance(data, dict) or not isinstance(data.get("tokens", []), list):
        raise ValueError(f"Token store {source} is malformed.")
    try:
        return [Token.from_dict(item) for item in data.get("tokens", [])]
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Token store {source} is malformed.") from exc


def save_tokens(path: Path | str, tokens: List[Token]) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = {"tokens": [token.to_dict() for token in tokens]}
    # mkstemp creates the file with mode 0600; the rename replaces the store atomically.
    fd, tmp_name = tempfile.mkstemp(prefix=".tokens-", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, indent=2) + "\n")
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def find_token(tokens: List[Token], name: str) -> Optional[Token]:
    for token in tokens:
        if token.name == name:
            return token
    return None


def add_token(path: Path | str, token: Token) -> List[Token]:
    tokens = load_tokens(path)
    if find_token(tokens, token.name) is not None:
        raise DuplicateTokenError(f"A token named {token.name!r} already exists.")
    tokens.append(token)
    save_tokens(path, tokens)
    _logger.info("Added token %r", token.name)
    return tokens


def remove_token(path: Path | str, name: str) -> List[Token]:
    tokens = load_tokens(path)
    remaining = [token for token in tokens if token.name != name]
    if len(remaining) == len(tokens):
        raise ValueError(f"No token named {name!r}.")
    save_tokens(path, remaining)
    _logger.info("Removed token %r", name)
    return remaining


def clear_tokens(path: Path | str) -> None:
    save_tokens(path, [])
