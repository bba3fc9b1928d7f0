"""Decoding of user-supplied shared secrets into HMAC key bytes.

Secrets arrive as text in one of three encodings (Base32, Base64 or Hex).
Whitespace around and inside the text is insignificant, Base32 is matched
case-insensitively and its ``=`` padding is optional. Every failure is a
``ValueError`` subclass so callers can report "invalid secret" uniformly.
"""

from __future__ import annotations

import base64
import binascii
import re
import string

BASE32 = "base32"
BASE64 = "base64"
HEX = "hex"
SUPPORTED_ENCODINGS = (BASE32, BASE64, HEX)

BASE32_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
BASE64_ALPHABET: str = string.ascii_letters + string.digits + "+/"
HEX_ALPHABET: str = string.hexdigits

_WHITESPACE = re.compile(r"\s+")


class SecretDecodeError(ValueError):
    """Raised when a secret cannot be turned into key bytes."""


class EmptySecretError(SecretDecodeError):
    """Raised when a secret is blank or decodes to no bytes at all."""


class InvalidCharacterError(SecretDecodeError):
    """Raised when a secret contains a character outside its alphabet."""

    def __init__(self, character: str, encoding: str) -> None:
        super().__init__(f"Invalid {encoding} character: {character!r}")
        self.character = character
        self.encoding = encoding


class UnsupportedEncodingError(SecretDecodeError):
    """Raised for an encoding name other than base32, base64 or hex."""


def decode_secret(text: str, encoding: str = BASE32) -> bytes:
    """Decode ``text`` in the declared ``encoding`` into raw key bytes.

    The blank check runs before any per-format logic so an empty secret is
    reported the same way whichever encoding was requested.
    """

    stripped = text.strip()
    if not stripped:
        raise EmptySecretError("Empty secret.")

    name = encoding.lower() if isinstance(encoding, str) else encoding
    if name == BASE32:
        key = _decode_base32(stripped)
    elif name == BASE64:
        key = _decode_base64(stripped)
    elif name == HEX:
        key = _decode_hex(stripped)
    else:
        raise UnsupportedEncodingError(f"Unsupported format: {encoding}")

    if not key:
        raise EmptySecretError(f"Secret decodes to no key bytes under {name}.")
    return key


def _decode_base32(text: str) -> bytes:
    clean = _WHITESPACE.sub("", text).rstrip("=")
    buffer = 0
    bits = 0
    out = bytearray()
    for char in clean:
        # Only ASCII is case-folded: str.upper() maps "ß" to "SS" and "ı" to "I".
        index = BASE32_ALPHABET.find(char.upper()) if char.isascii() else -1
        if index == -1:
            raise InvalidCharacterError(char, BASE32)
        buffer = (buffer << 5) | index
        bits += 5
        if bits >= 8:
            bits -= 8
            out.append((buffer >> bits) & 0xFF)
            buffer &= (1 << bits) - 1
    return bytes(out)


def _decode_base64(text: str) -> bytes:
    clean = _WHITESPACE.sub("", text)
    for char in clean:
        if char not in BASE64_ALPHABET and char != "=":
            raise InvalidCharacterError(char, BASE64)

    body = clean.rstrip("=")
    if "=" in body:
        raise SecretDecodeError("Base64 padding may only appear at the end.")
    if len(body) % 4 == 1:
        raise SecretDecodeError("Base64 secret length does not form whole bytes.")
    padded = body + "=" * (-len(body) % 4)
    try:
        return base64.b64decode(padded, validate=True)
    except binascii.Error as exc:
        raise SecretDecodeError("Base64 secret could not be decoded.") from exc


def _decode_hex(text: str) -> bytes:
    clean = _WHITESPACE.sub("", text)
    if clean[:2] in ("0x", "0X"):
        clean = clean[2:]
    for char in clean:
        if char not in HEX_ALPHABET:
            raise InvalidCharacterError(char, HEX)
    if len(clean) % 2:
        clean = "0" + clean
    return bytes.fromhex(clean)


def normalize_base32(text: str) -> str:
    """Return the unpadded upper-case Base32 form used in otpauth URIs.

    The text is validated by decoding it first.
    """

    decode_secret(text, BASE32)
    return _WHITESPACE.sub("", text).rstrip("=").upper()


def encode_base32(key: bytes) -> str:
    """Encode key bytes as unpadded Base32, the otpauth ``secret`` form."""

    return base64.b32encode(key).decode("ascii").rstrip("=")


def is_valid_secret(text: str, encoding: str = BASE32) -> bool:
    try:
        decode_secret(text, encoding)
    except SecretDecodeError:
        return False
    return True
