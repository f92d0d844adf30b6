"""
Primitive little-endian codec for the percolator wire format.

Every multi-byte integer is little-endian. 128-bit values travel as two u64
words (low word first), which is exactly a 16-byte little-endian
``BytesInteger``. Addresses are fixed 32-byte values with no alignment.

The byte-level work is done by ``construct`` primitives; the wrappers here
add what the wire contract needs on top:

- ``to_exact_int`` is the only place a caller-supplied number (int, decimal
  string, Decimal, float) becomes an ``int``. Anything that would round or
  truncate is rejected.
- ``u128_to_i128`` / ``i128_to_u128`` are the only sign reinterpretations.
  Fields declared u128 on-chain that carry a signed quantity go through
  ``U128AsI128Adapter``, which calls them.
- Range and span checks run before ``construct`` sees the value, so
  failures surface as this package's errors and never as partial output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Union

from construct import Adapter, Bytes, BytesInteger, Construct, Int8ul, Int16ul, Int32ul, Int64sl, Int64ul
from solders.pubkey import Pubkey

from .errors import AbiRangeError, BufferTooShortError, CoercionError, FieldOverflowError


IntLike = Union[int, str, Decimal, float]
PubkeyLike = Union[Pubkey, str, bytes, bytearray, memoryview]

PUBKEY_LEN = 32

U128_MAX = (1 << 128) - 1
I128_MIN = -(1 << 127)
I128_MAX = (1 << 127) - 1

_TWO_POW_127 = 1 << 127
_TWO_POW_128 = 1 << 128

# Largest magnitude a float can hold while every smaller integer stays exact.
_MAX_EXACT_FLOAT = 1 << 53
# u128::MAX has 39 digits; leave room for sign, separators and whitespace.
_MAX_INT_STR_LEN = 80

_INT_STR_RE = re.compile(r"^[+-]?[0-9]+(?:_[0-9]+)*$")
_HEX_CHARS_RE = re.compile(r"^[0-9a-fA-F]+$")


def to_exact_int(value: IntLike, *, name: str = "value") -> int:
    """
    Normalize an int-like input to an exact Python ``int``.

    Accepted:
    - ``int`` (``bool`` is rejected),
    - decimal strings with optional sign, surrounding whitespace and ``_`` separators,
    - integral, finite ``Decimal``,
    - integral ``float`` with magnitude <= 2**53.

    Raises:
        CoercionError: if the value cannot be represented exactly.
    """
    if isinstance(value, bool):
        raise CoercionError(f"{name} must be an integer, got bool")
    if isinstance(value, int):
        return int(value)
    if isinstance(value, str):
        s = value.strip()
        if len(s) > _MAX_INT_STR_LEN or not _INT_STR_RE.fullmatch(s):
            raise CoercionError(f"{name} must be a decimal integer string, got {value!r}")
        return int(s)
    if isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            raise CoercionError(f"{name} must be an integral Decimal, got {value}")
        return int(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise CoercionError(f"{name} must be integral, got {value!r}")
        if abs(value) > _MAX_EXACT_FLOAT:
            raise CoercionError(f"{name}={value!r} exceeds the exactly representable float range; pass an int or str")
        return int(value)
    raise CoercionError(f"{name} must be int|str|Decimal|float, got {type(value).__name__}")


def u128_to_i128(raw: int) -> int:
    """Reinterpret an unsigned 128-bit value as two's-complement signed."""
    if not 0 <= raw <= U128_MAX:
        raise FieldOverflowError(f"u128 value out of range: {raw}")
    return raw - _TWO_POW_128 if raw >= _TWO_POW_127 else raw


def i128_to_u128(value: int) -> int:
    """Map a signed 128-bit value onto its two's-complement unsigned encoding."""
    if not I128_MIN <= value <= I128_MAX:
        raise FieldOverflowError(f"i128 value out of range: {value}")
    return value + _TWO_POW_128 if value < 0 else value


def _require_span(buf: bytes | bytearray | memoryview, offset: int, width: int, *, what: str) -> None:
    if offset < 0:
        raise AbiRangeError(f"negative offset {offset} for {what}")
    end = offset + width
    if end > len(buf):
        raise BufferTooShortError(end, len(buf), what=f"{what} at offset {offset}")


class U128AsI128Adapter(Adapter):
    """Signed view of a slot declared u128 on-chain (e.g. realized PnL)."""

    def _decode(self, obj: int, context: Any, path: str) -> int:
        return u128_to_i128(obj)

    def _encode(self, obj: int, context: Any, path: str) -> int:
        return i128_to_u128(obj)


class PubkeyAdapter(Adapter):
    def _decode(self, obj: bytes, context: Any, path: str) -> Pubkey:
        return Pubkey.from_bytes(obj)

    def _encode(self, obj: PubkeyLike, context: Any, path: str) -> bytes:
        return bytes(to_pubkey(obj))


U128_LE = BytesInteger(16, signed=False, swapped=True)
I128_LE = BytesInteger(16, signed=True, swapped=True)
U128_AS_I128_LE = U128AsI128Adapter(U128_LE)
PUBKEY_BYTES = PubkeyAdapter(Bytes(PUBKEY_LEN))


@dataclass(frozen=True)
class IntField:
    """Fixed-width little-endian integer field."""

    name: str
    con: Construct
    signed: bool

    @property
    def width(self) -> int:
        return self.con.sizeof()

    @property
    def min_value(self) -> int:
        return -(1 << (self.width * 8 - 1)) if self.signed else 0

    @property
    def max_value(self) -> int:
        bits = self.width * 8
        return (1 << (bits - 1)) - 1 if self.signed else (1 << bits) - 1

    def check(self, value: IntLike, *, name: str | None = None) -> int:
        """Coerce ``value`` and verify it fits this field. Returns the exact int."""
        label = name or self.name
        v = to_exact_int(value, name=label)
        if not self.min_value <= v <= self.max_value:
            raise FieldOverflowError(
                f"{label}={v} does not fit {self.name} [{self.min_value}, {self.max_value}]"
            )
        return v

    def encode(self, value: IntLike, *, name: str | None = None) -> bytes:
        return self.con.build(self.check(value, name=name))

    def decode(self, buf: bytes | bytearray | memoryview, offset: int = 0) -> int:
        _require_span(buf, offset, self.width, what=self.name)
        return self.con.parse(bytes(buf[offset : offset + self.width]))


@dataclass(frozen=True)
class PubkeyField:
    """Opaque 32-byte address field."""

    name: str = "pubkey"

    @property
    def con(self) -> Construct:
        return PUBKEY_BYTES

    @property
    def width(self) -> int:
        return PUBKEY_LEN

    def encode(self, value: PubkeyLike, *, name: str | None = None) -> bytes:
        return self.con.build(to_pubkey(value, name=name or self.name))

    def decode(self, buf: bytes | bytearray | memoryview, offset: int = 0) -> Pubkey:
        _require_span(buf, offset, self.width, what=self.name)
        return self.con.parse(bytes(buf[offset : offset + self.width]))


U8 = IntField("u8", Int8ul, False)
U16 = IntField("u16", Int16ul, False)
U32 = IntField("u32", Int32ul, False)
U64 = IntField("u64", Int64ul, False)
I64 = IntField("i64", Int64sl, True)
U128 = IntField("u128", U128_LE, False)
I128 = IntField("i128", I128_LE, True)
PUBKEY = PubkeyField()


@dataclass(frozen=True)
class U128AsI128Field:
    """A u128 slot on-chain that holds a two's-complement signed quantity."""

    name: str = "u128_as_i128"

    @property
    def con(self) -> Construct:
        return U128_AS_I128_LE

    @property
    def width(self) -> int:
        return 16

    def encode(self, value: IntLike, *, name: str | None = None) -> bytes:
        return self.con.build(I128.check(value, name=name or self.name))

    def decode(self, buf: bytes | bytearray | memoryview, offset: int = 0) -> int:
        _require_span(buf, offset, self.width, what=self.name)
        return self.con.parse(bytes(buf[offset : offset + self.width]))


U128_AS_I128 = U128AsI128Field()

Field = Union[IntField, PubkeyField, U128AsI128Field]


def to_pubkey(value: PubkeyLike, *, name: str = "address") -> Pubkey:
    """Accept a ``Pubkey``, a base58 string, or 32 raw bytes."""
    if isinstance(value, Pubkey):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) != PUBKEY_LEN:
            raise CoercionError(f"{name} must be {PUBKEY_LEN} bytes, got {len(raw)}")
        return Pubkey.from_bytes(raw)
    if isinstance(value, str):
        try:
            return Pubkey.from_string(value.strip())
        except ValueError as exc:
            raise CoercionError(f"{name} is not a valid base58 address: {value!r}") from exc
    raise CoercionError(f"{name} must be Pubkey|str|bytes, got {type(value).__name__}")


def feed_id_bytes(value: PubkeyLike, *, name: str = "index_feed_id") -> bytes:
    """
    Canonicalize an oracle feed identifier to 32 raw bytes.

    Strings are read as hex (64 chars, optional ``0x`` prefix), which is how
    price-feed ids are published; bytes and ``Pubkey`` are taken verbatim.
    """
    if isinstance(value, Pubkey):
        return bytes(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) != PUBKEY_LEN:
            raise CoercionError(f"{name} must be {PUBKEY_LEN} bytes, got {len(raw)}")
        return raw
    if isinstance(value, str):
        s = value.strip()
        if s.lower().startswith("0x"):
            s = s[2:]
        if len(s) != 2 * PUBKEY_LEN:
            raise CoercionError(f"{name} must be {2 * PUBKEY_LEN} hex chars, got {len(s)}")
        if not _HEX_CHARS_RE.fullmatch(s):
            raise CoercionError(f"{name} must be valid hex")
        return bytes.fromhex(s)
    raise CoercionError(f"{name} must be hex str|bytes|Pubkey, got {type(value).__name__}")


enc_u8 = U8.encode
enc_u16 = U16.encode
enc_u32 = U32.encode
enc_u64 = U64.encode
enc_i64 = I64.encode
enc_u128 = U128.encode
enc_i128 = I128.encode
enc_pubkey = PUBKEY.encode

read_u8 = U8.decode
read_u16 = U16.decode
read_u32 = U32.decode
read_u64 = U64.decode
read_i64 = I64.decode
read_u128 = U128.decode
read_i128 = I128.decode
read_pubkey = PUBKEY.decode
read_u128_as_i128 = U128_AS_I128.decode
