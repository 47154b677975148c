"""Command-line interface for tinyland-keyb64.

Provides subcommands:
  encode   - Keyed-Base64-encode data from stdin
  decode   - Keyed-Base64-decode data from stdin
  alphabet - Print the alphabet derived from the key
  demo     - Encode a message and decode it back

The key comes from an environment variable (--key-env, default KEYB64_KEY)
or from a KDBX database entry (--kdbx DB ENTRY).

Exit codes:
    0 - Success
    1 - KDBX entry not found
    2 - Database open failed
    3 - Invalid arguments or key
    4 - Decode failed
"""

import argparse
import logging
import os
import sys

from tinyland_keyb64.codec import DecodeError, InvalidKey, KeyedCodec
from tinyland_keyb64.keysource import (
    DEFAULT_KEY_ENV,
    EntryNotFoundError,
    KeySourceError,
    key_from_env,
    key_from_kdbx,
)

logger = logging.getLogger(__name__)

DEMO_MESSAGE = "This is a secret message"


def _resolve_key(args) -> bytes:
    """Resolve the codec key from CLI arguments.

    --kdbx takes precedence over --key-env. Never prints the key.
    """
    kdbx = getattr(args, "kdbx", None)
    if kdbx:
        db_path, entry_path = kdbx
        password = os.environ.get(args.password_env)
        if not password:
            print(
                f"error: environment variable {args.password_env} is not set or empty",
                file=sys.stderr,
            )
            sys.exit(3)
        try:
            return key_from_kdbx(
                entry_path, database_path=db_path, password=password, attribute=args.attr
            )
        except EntryNotFoundError as exc:
            print(f"error: {exc}", file=sys.stderr)
            sys.exit(1)
        except KeySourceError as exc:
            print(f"error: {exc}", file=sys.stderr)
            sys.exit(2)

    try:
        return key_from_env(args.key_env)
    except KeySourceError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(3)


def _build_codec(args) -> KeyedCodec:
    """Build the codec for the resolved key, exiting with code 3 on a bad key."""
    try:
        return KeyedCodec(_resolve_key(args))
    except InvalidKey as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(3)


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


def cmd_encode(args) -> int:
    """Handle the 'encode' subcommand -- reads stdin, writes keyed text."""
    codec = _build_codec(args)
    raw = sys.stdin.buffer.read()
    sys.stdout.write(codec.encode(raw))
    return 0


def cmd_decode(args) -> int:
    """Handle the 'decode' subcommand -- reads stdin, writes decoded bytes."""
    codec = _build_codec(args)
    encoded = sys.stdin.read().strip()
    if not encoded:
        return 0
    try:
        decoded = codec.decode(encoded)
    except DecodeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 4
    sys.stdout.buffer.write(decoded)
    return 0


def cmd_alphabet(args) -> int:
    """Handle the 'alphabet' subcommand."""
    codec = _build_codec(args)
    print(codec.alphabet)
    return 0


def cmd_demo(args) -> int:
    """Handle the 'demo' subcommand: print the encoded message, then the decoded one."""
    codec = _build_codec(args)
    encoded = codec.encode_str(args.message)
    print(encoded)
    print(codec.decode_str(encoded))
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_key_args(parser: argparse.ArgumentParser) -> None:
    """Add common key source arguments to a subparser."""
    parser.add_argument(
        "--key-env",
        default=DEFAULT_KEY_ENV,
        help=f"Environment variable holding the codec key (default: {DEFAULT_KEY_ENV})",
    )
    parser.add_argument(
        "--kdbx",
        nargs=2,
        metavar=("DB", "ENTRY"),
        default=None,
        help="Read the key from ENTRY in the KDBX database DB instead",
    )
    parser.add_argument(
        "--password-env",
        default="KEEPASS_PASSWORD",
        help="Environment variable holding the DB master password (default: KEEPASS_PASSWORD)",
    )
    parser.add_argument(
        "--attr",
        default="password",
        help="KDBX entry attribute holding the key (default: password)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="tinyland-keyb64",
        description="Base64 over a key-permuted alphabet (obfuscation, not encryption)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__import__('tinyland_keyb64').__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging on stderr"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # -- encode --
    p_enc = sub.add_parser("encode", help="Keyed-Base64-encode data from stdin")
    _add_key_args(p_enc)
    p_enc.set_defaults(func=cmd_encode)

    # -- decode --
    p_dec = sub.add_parser("decode", help="Keyed-Base64-decode data from stdin")
    _add_key_args(p_dec)
    p_dec.set_defaults(func=cmd_decode)

    # -- alphabet --
    p_alpha = sub.add_parser("alphabet", help="Print the alphabet derived from the key")
    _add_key_args(p_alpha)
    p_alpha.set_defaults(func=cmd_alphabet)

    # -- demo --
    p_demo = sub.add_parser("demo", help="Encode a message and decode it back")
    _add_key_args(p_demo)
    p_demo.add_argument(
        "message",
        nargs="?",
        default=DEMO_MESSAGE,
        help=f"Message to round-trip (default: {DEMO_MESSAGE!r})",
    )
    p_demo.set_defaults(func=cmd_demo)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logger.debug("Running subcommand %s", args.command)
    return args.func(args)
