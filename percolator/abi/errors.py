"""Exception types for the percolator ABI layer.

Four families, matching how callers are expected to react:

- layout errors (``SlabLayoutError``): the buffer cannot be interpreted at all;
  nothing after the failing region may be trusted.
- range errors (``AbiRangeError``): an index or numeric argument does not fit
  the table capacity / field width. Raised before any bytes are produced.
- coercion errors (``CoercionError``): an input could not be converted to an
  exact integer without rounding or truncation.
- record errors (``CorruptAccountError``): one account slot is unreadable while
  the aggregate regions are still valid.

An unused account slot is *not* an error; readers return ``None`` for it.
"""

from __future__ import annotations


class PercolatorError(Exception):
    """Root of every error raised by this package."""


class SlabLayoutError(PercolatorError, ValueError):
    """Raised when a slab buffer does not match the expected binary layout."""


class BufferTooShortError(SlabLayoutError):
    """Raised when a read would run past the end of the buffer."""

    def __init__(self, needed: int, available: int, *, what: str = "buffer") -> None:
        self.needed = needed
        self.available = available
        super().__init__(f"{what} too short: need {needed} bytes, have {available}")


class BadMagicError(SlabLayoutError):
    """Raised when the slab header magic does not identify a market slab."""

    def __init__(self, found: int, expected: int) -> None:
        self.found = found
        self.expected = expected
        super().__init__(f"bad slab magic: found 0x{found:016x}, expected 0x{expected:016x}")


class UnsupportedVersionError(SlabLayoutError):
    """Raised when the slab header carries a format version this decoder does not know."""

    def __init__(self, found: int, expected: int) -> None:
        self.found = found
        self.expected = expected
        super().__init__(f"unsupported slab version {found} (decoder understands {expected})")


class SlabSizeError(SlabLayoutError):
    """Raised when a buffer is longer than, or not a whole multiple of, the slab geometry."""

    def __init__(self, found: int, expected: int | None, *, detail: str = "") -> None:
        self.found = found
        self.expected = expected
        want = f"expected {expected}" if expected is not None else detail
        super().__init__(f"slab length {found} does not match layout: {want}")


class AbiRangeError(PercolatorError, ValueError):
    """Raised when an index or value lies outside its representable range."""


class AccountIndexError(AbiRangeError, IndexError):
    """Raised when an account index is outside the slab's table capacity."""

    def __init__(self, index: int, capacity: int) -> None:
        self.index = index
        self.capacity = capacity
        super().__init__(f"account index {index} out of range [0, {capacity})")


class FieldOverflowError(AbiRangeError, OverflowError):
    """Raised when a value does not fit the width/signedness of its wire field."""


class CoercionError(PercolatorError, ValueError):
    """Raised when an input cannot be represented exactly as an integer."""


class CorruptAccountError(PercolatorError, ValueError):
    """Raised when a used account slot holds data that cannot be decoded."""

    def __init__(self, index: int, reason: str) -> None:
        self.index = index
        self.reason = reason
        super().__init__(f"account slot {index} is corrupt: {reason}")


class AccountListLengthError(PercolatorError, ValueError):
    """Raised when the caller supplies a different number of keys than the role template."""

    def __init__(self, expected: int, actual: int, *, template: str = "") -> None:
        self.expected = expected
        self.actual = actual
        label = f" for {template}" if template else ""
        super().__init__(f"account count mismatch{label}: expected {expected}, got {actual}")


class PdaCollisionError(PercolatorError):
    """Raised when two distinct seed sets derive the same program address."""


class ConfigError(PercolatorError, ValueError):
    """Raised when configuration is missing, unreadable or invalid."""

    def __init__(self, issues: list[str]) -> None:
        self.issues = issues
        super().__init__("invalid config:\n" + "\n".join(issues))
