"""Tinyland KeyB64 - Base64 over a key-permuted alphabet.

Encoded text can only be read back with the key that shuffled the alphabet.
This is fast obfuscation for payloads in transit or at rest, NOT encryption.
Includes a CLI that can take its key from a KeePassXC database.
"""

__version__ = "0.1.0"

from tinyland_keyb64.codec import (  # noqa: F401
    KeyedCodec,
    derive_alphabet,
    encode,
    decode,
    STANDARD_ALPHABET,
    PAD_SYMBOL,
    KeyedCodecError,
    InvalidKey,
    DecodeError,
    InvalidLength,
    InvalidSymbol,
    InvalidPadding,
)
from tinyland_keyb64.keysource import (  # noqa: F401
    key_from_env,
    key_from_kdbx,
    KeySourceError,
    DatabaseNotFoundError,
    AuthenticationError,
    EntryNotFoundError,
)
from tinyland_keyb64.cli import main  # noqa: F401
