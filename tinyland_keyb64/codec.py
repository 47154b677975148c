"""Keyed Base64 codec.

The 64 standard Base64 symbols are shuffled by a permutation derived from a
secret key, so the encoded text cannot be read back with the standard
alphabet. This is obfuscation for transport and storage, not encryption:
do not rely on it to protect sensitive data.

Bit packing is delegated to :mod:`base64`; the codec only translates between
the standard alphabet and the keyed one. The pad symbol ``=`` is never
permuted, so padded lengths stay wire-compatible with plain Base64.
"""

import base64
import logging
import zlib
from types import MappingProxyType
from typing import Mapping, Union

logger = logging.getLogger(__name__)

STANDARD_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
PAD_SYMBOL = "="

_LCG_MULTIPLIER = 6364136223846793005
_LCG_INCREMENT = 1442695040888963407
_MASK64 = (1 << 64) - 1
_INVALID = 0xFF

# Low bits of the last symbol that padding discards, by pad count.
_TRAILING_BITS = {1: 0x03, 2: 0x0F}

KeyLike = Union[bytes, bytearray, memoryview, str]


class KeyedCodecError(ValueError):
    """Base exception for keyed codec operations."""


class InvalidKey(KeyedCodecError):
    """Raised when a key cannot seed an alphabet (e.g. it is empty)."""


class DecodeError(KeyedCodecError):
    """Base exception for text that cannot be decoded."""


class InvalidLength(DecodeError):
    """Raised when the encoded length is not a multiple of 4."""


class InvalidSymbol(DecodeError):
    """Raised when a symbol is not part of the codec's alphabet."""


class InvalidPadding(DecodeError):
    """Raised when pad symbols are not a trailing run of at most two."""


def _coerce_key(key: KeyLike) -> bytes:
    if isinstance(key, str):
        key = key.encode("utf-8")
    elif isinstance(key, (bytearray, memoryview)):
        key = bytes(key)
    elif not isinstance(key, bytes):
        raise TypeError("Key must be bytes or str")
    if not key:
        raise InvalidKey("Key must not be empty")
    return key


def derive_alphabet(key: KeyLike) -> str:
    """Return the permutation of the standard alphabet selected by ``key``.

    The seed packs the CRC-32 of the key into the high word and the CRC-32
    of the reversed key into the low word. A 64-bit linear congruential
    generator started from that seed drives a Fisher-Yates shuffle of
    :data:`STANDARD_ALPHABET`. CRC-32 changes on any single-byte change, so
    every byte of the key feeds the result.

    Raises:
        InvalidKey: If the key is empty.
        TypeError: If the key is neither bytes-like nor str.
    """
    key = _coerce_key(key)
    state = (zlib.crc32(key) << 32) | zlib.crc32(key[::-1])

    symbols = list(STANDARD_ALPHABET)
    for i in range(len(symbols) - 1, 0, -1):
        state = (state * _LCG_MULTIPLIER + _LCG_INCREMENT) & _MASK64
        j = (state >> 32) % (i + 1)
        symbols[i], symbols[j] = symbols[j], symbols[i]
    return "".join(symbols)


class KeyedCodec:
    """Base64 encoder/decoder over a key-permuted alphabet.

    All tables are built once in the constructor and never mutated, so a
    single instance can be shared between threads.
    """

    __slots__ = (
        "_alphabet",
        "_symbols",
        "_lookup",
        "_reverse",
        "_encode_table",
        "_decode_table",
    )

    def __init__(self, key: KeyLike):
        alphabet = derive_alphabet(key)
        symbols = alphabet.encode("ascii")
        standard = STANDARD_ALPHABET.encode("ascii")

        reverse = bytearray([_INVALID]) * 256
        for value, code in enumerate(symbols):
            reverse[code] = value

        self._alphabet = alphabet
        self._symbols = symbols
        self._lookup = MappingProxyType(
            {symbol: value for value, symbol in enumerate(alphabet)}
        )
        self._reverse = bytes(reverse)
        self._encode_table = bytes.maketrans(standard, symbols)
        self._decode_table = bytes.maketrans(symbols, standard)
        logger.debug("Built keyed alphabet with %d symbols", len(alphabet))

    @property
    def alphabet(self) -> str:
        return self._alphabet

    @property
    def pad_symbol(self) -> str:
        return PAD_SYMBOL

    @property
    def reverse_lookup(self) -> Mapping[str, int]:
        """Read-only mapping from each alphabet symbol to its 6-bit value."""
        return self._lookup

    def __eq__(self, other):
        if not isinstance(other, KeyedCodec):
            return NotImplemented
        return self._alphabet == other._alphabet

    def __hash__(self):
        return hash(self._alphabet)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key=<hidden>)"

    def encode(self, data: Union[bytes, bytearray, memoryview]) -> str:
        """Encode bytes to keyed Base64 text. Empty input gives ``""``."""
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError("Input must be bytes")
        return base64.b64encode(data).translate(self._encode_table).decode("ascii")

    def decode(self, text: Union[str, bytes]) -> bytes:
        """Decode keyed Base64 text back to bytes.

        Checks run in order: length, padding, symbols, then the trailing
        bits of the last symbol, which must be zero as ``encode`` emits them.

        Raises:
            InvalidLength: If the length is not a multiple of 4.
            InvalidPadding: If ``=`` appears other than as a trailing run of
                one or two symbols.
            InvalidSymbol: If a symbol is outside the alphabet, or the last
                symbol carries bits that padding should have zeroed.
            TypeError: If ``text`` is neither str nor bytes.
        """
        if isinstance(text, (bytes, bytearray)):
            text = bytes(text).decode("latin-1")
        elif not isinstance(text, str):
            raise TypeError("Input must be a string")
        if not text:
            return b""

        if len(text) % 4:
            raise InvalidLength(
                f"Invalid length {len(text)}: must be a multiple of 4"
            )

        body = text.rstrip(PAD_SYMBOL)
        padding = len(text) - len(body)
        if padding > 2:
            raise InvalidPadding(f"Too many padding symbols: {padding}")
        misplaced = body.find(PAD_SYMBOL)
        if misplaced != -1:
            raise InvalidPadding(
                f"Padding symbol at position {misplaced} is not trailing"
            )

        try:
            raw = body.encode("ascii")
        except UnicodeEncodeError as exc:
            raise InvalidSymbol(
                f"Invalid symbol {body[exc.start]!r} at position {exc.start}"
            ) from None
        if raw.translate(None, self._symbols):
            pos = next(i for i, code in enumerate(raw) if self._reverse[code] == _INVALID)
            raise InvalidSymbol(f"Invalid symbol {body[pos]!r} at position {pos}")

        if padding and self._reverse[raw[-1]] & _TRAILING_BITS[padding]:
            raise InvalidSymbol(
                f"Invalid last symbol {body[-1]!r}: non-zero trailing bits"
            )

        return base64.b64decode(
            raw.translate(self._decode_table) + PAD_SYMBOL.encode() * padding,
            validate=True,
        )

    def encode_str(self, text: str, encoding: str = "utf-8") -> str:
        """Encode a text string to keyed Base64."""
        return self.encode(text.encode(encoding))

    def decode_str(self, text: str, encoding: str = "utf-8") -> str:
        """Decode keyed Base64 to a text string."""
        return self.decode(text).decode(encoding)


def encode(data: bytes, key: KeyLike) -> str:
    """Encode ``data`` with a codec built from ``key``."""
    return KeyedCodec(key).encode(data)


def decode(text: str, key: KeyLike) -> bytes:
    """Decode ``text`` with a codec built from ``key``."""
    return KeyedCodec(key).decode(text)
