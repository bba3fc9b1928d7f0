"""Command-line interface for authcodes.

Computes TOTP/HOTP codes for a secret given on the command line and keeps a
small list of named tokens whose current codes can be listed together.
"""

from __future__ import annotations

import argparse
import getpass
import logging
from pathlib import Path
from typing import List, Optional

from .clock import clock_utils
from .codec import secret_utils
from .crypto import hmac_utils
from .io import store_utils
from .otp import otp_utils, token_utils


def _add_code_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=list(secret_utils.SUPPORTED_ENCODINGS),
        default=secret_utils.BASE32,
        help="Encoding of the secret (defaults to base32).",
    )
    parser.add_argument("--digits", type=int, default=otp_utils.DEFAULT_DIGITS, help="Code length (6-9).")
    parser.add_argument(
        "--algorithm",
        default=hmac_utils.DEFAULT_ALGORITHM,
        help="HMAC hash: SHA1, SHA256 or SHA512.",
    )


def _add_secret_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--secret", help="Secret text. Prompted for (hidden) when omitted.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="authcodes", description="Compute one-time codes from shared secrets.")
    parser.add_argument("--store", help=f"Token list path (defaults to ${store_utils.STORE_ENV} or ~/.authcodes/tokens.json).")
    parser.add_argument("--time-url", help="Time service used to correct the local clock.")
    parser.add_argument("--verbose", action="store_true", help="Log progress to stderr.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    code_parser = subparsers.add_parser("code", help="Print the current TOTP code for a secret.")
    _add_secret_option(code_parser)
    _add_code_options(code_parser)
    code_parser.add_argument("--period", type=int, default=otp_utils.DEFAULT_PERIOD, help="Time step in seconds.")
    code_parser.add_argument("--timestamp", type=float, help="Unix time to compute the code for instead of now.")
    code_parser.add_argument("--no-sync", action="store_true", help="Trust the local clock, skip the time service.")

    hotp_parser = subparsers.add_parser("hotp", help="Print the HOTP code for an explicit counter.")
    _add_secret_option(hotp_parser)
    _add_code_options(hotp_parser)
    hotp_parser.add_argument("--counter", type=int, required=True, help="HOTP counter value.")

    subparsers.add_parser("offset", help="Show the measured clock offset.")

    add_parser = subparsers.add_parser("add", help="Add a named token to the list.")
    add_parser.add_argument("--name", required=True, help="Display name, unique within the list.")
    _add_secret_option(add_parser)
    _add_code_options(add_parser)
    add_parser.add_argument("--period", type=int, default=otp_utils.DEFAULT_PERIOD, help="Time step in seconds.")

    list_parser = subparsers.add_parser("list", help="Show every token with its current code.")
    list_parser.add_argument("--no-sync", action="store_true", help="Trust the local clock, skip the time service.")

    remove_parser = subparsers.add_parser("remove", help="Delete a token from the list.")
    remove_parser.add_argument("--name", required=True)

    subparsers.add_parser("clear", help="Delete every token from the list.")

    verify_parser = subparsers.add_parser("verify", help="Check a code against a stored token.")
    verify_parser.add_argument("--name", required=True)
    verify_parser.add_argument("--code", required=True)
    verify_parser.add_argument("--window", type=int, default=1, help="Accepted steps before/after now.")
    verify_parser.add_argument("--no-sync", action="store_true", help="Trust the local clock, skip the time service.")

    uri_parser = subparsers.add_parser("uri", help="Print the otpauth:// provisioning URI of a token.")
    uri_parser.add_argument("--name", required=True)
    uri_parser.add_argument("--issuer", default=token_utils.DEFAULT_ISSUER, help="Issuer label.")

    secret_parser = subparsers.add_parser("new-secret", help="Generate a random Base32 secret.")
    secret_parser.add_argument("--length", type=int, default=32, help="Number of Base32 characters.")

    return parser


def _init_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def _read_secret(secret: Optional[str]) -> str:
    if secret is not None:
        return secret
    secret = getpass.getpass("Enter secret: ")
    if not secret.strip():
        raise ValueError("Secret may not be empty.")
    return secret


def _offset(time_url: Optional[str], no_sync: bool) -> int:
    if no_sync:
        return 0
    return clock_utils.get_offset(time_url)


def _store_path(store: Optional[str]) -> Path:
    return Path(store).expanduser() if store else store_utils.default_store_path()


def _stored_token(store: Optional[str], name: str) -> token_utils.Token:
    token = store_utils.find_token(store_utils.load_tokens(_store_path(store)), name)
    if token is None:
        raise ValueError(f"No token named {name!r}.")
    return token


def handle_code(args: argparse.Namespace) -> None:
    secret = _read_secret(args.secret)
    offset = 0 if args.timestamp is not None else _offset(args.time_url, args.no_sync)
    code = otp_utils.current_code(
        secret,
        args.format,
        args.digits,
        args.period,
        args.algorithm,
        args.timestamp,
        offset=offset,
    )
    print(code)


def handle_hotp(args: argparse.Namespace) -> None:
    key = secret_utils.decode_secret(_read_secret(args.secret), args.format)
    print(otp_utils.hotp(key, args.counter, args.digits, args.algorithm))


def handle_offset(args: argparse.Namespace) -> None:
    correction = clock_utils.reconcile_clock(args.time_url)
    if correction.applied:
        print(f"Clock offset: {correction.offset:+d} s (from {correction.source})")
    else:
        print("Time service unreachable; using the local clock (offset 0 s).")


def handle_add(args: argparse.Namespace) -> None:
    token = token_utils.build_token(
        args.name,
        _read_secret(args.secret),
        args.digits,
        args.period,
        encoding=args.format,
        algorithm=args.algorithm,
    )
    store_utils.add_token(_store_path(args.store), token)
    print(f"Token {token.name!r} added.")


def handle_list(args: argparse.Namespace) -> None:
    tokens = store_utils.load_tokens(_store_path(args.store))
    if not tokens:
        print("No tokens added yet")
        return
    offset = _offset(args.time_url, args.no_sync)
    now = clock_utils.corrected_time(offset)
    board = token_utils.TokenBoard(tokens)
    board.refresh(now)
    width = max(len(token.name) for token in tokens)
    for name, code, remaining in board.rows(now):
        print(f"{name.ljust(width)}  {code}  {remaining}s")


def handle_remove(args: argparse.Namespace) -> None:
    store_utils.remove_token(_store_path(args.store), args.name)
    print(f"Token {args.name!r} removed.")


def handle_clear(args: argparse.Namespace) -> None:
    store_utils.clear_tokens(_store_path(args.store))
    print("All tokens removed.")


def handle_verify(args: argparse.Namespace) -> None:
    token = _stored_token(args.store, args.name)
    key = secret_utils.decode_secret(token.secret, token.encoding)
    offset = _offset(args.time_url, args.no_sync)
    if not otp_utils.verify_code(key, args.code, token.parameters, valid_window=args.window, offset=offset):
        raise ValueError("Invalid or expired code.")
    print("Code accepted.")


def handle_uri(args: argparse.Namespace) -> None:
    token = _stored_token(args.store, args.name)
    print("Provisioning URI (store securely, do not share):")
    print(token_utils.provisioning_uri(token, args.issuer))


def handle_new_secret(args: argparse.Namespace) -> None:
    print(token_utils.generate_secret(args.length))


_HANDLERS = {
    "code": handle_code,
    "hotp": handle_hotp,
    "offset": handle_offset,
    "add": handle_add,
    "list": handle_list,
    "remove": handle_remove,
    "clear": handle_clear,
    "verify": handle_verify,
    "uri": handle_uri,
    "new-secret": handle_new_secret,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _init_logging(args.verbose)

    handler = _HANDLERS.get(args.command)
    if handler is None:
        parser.error("Unknown command")
        return 2
    try:
        handler(args)
    except (ValueError, FileNotFoundError) as exc:
        print(f"Error: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
