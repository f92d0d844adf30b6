from __future__ import annotations

from typing import Any, Callable, Optional

import pytest
from construct import Struct

from percolator.state.layout import (
    ACCOUNT,
    CONFIG,
    CONFIG_OFF,
    ENGINE,
    ENGINE_OFF,
    HEADER,
    HEADER_OFF,
    PARAMS,
    PARAMS_OFF,
    SLAB_MAGIC,
    SLAB_VERSION,
    SlabLayout,
    offset_of,
    subcon,
)


class SlabBuilder:
    """Writes fields through the region constructs at the layout's offsets to build test slabs."""

    def __init__(self, layout: SlabLayout) -> None:
        self.layout = layout
        self.buf = bytearray(layout.slab_len)
        self.header(magic=SLAB_MAGIC, version=SLAB_VERSION)

    def _write(self, region: Struct, base: int, values: dict[str, Any]) -> "SlabBuilder":
        for name, value in values.items():
            off = base + offset_of(region, name)
            raw = subcon(region, name).build(value)
            self.buf[off : off + len(raw)] = raw
        return self

    def header(self, **values: Any) -> "SlabBuilder":
        return self._write(HEADER, HEADER_OFF, values)

    def config(self, **values: Any) -> "SlabBuilder":
        return self._write(CONFIG, CONFIG_OFF, values)

    def params(self, **values: Any) -> "SlabBuilder":
        return self._write(PARAMS, PARAMS_OFF, values)

    def engine(self, **values: Any) -> "SlabBuilder":
        return self._write(ENGINE, ENGINE_OFF, values)

    def account(self, index: int, **values: Any) -> "SlabBuilder":
        return self._write(ACCOUNT, self.layout.account_offset(index), values)

    def raw_byte(self, offset: int, value: int) -> "SlabBuilder":
        self.buf[offset] = value
        return self

    def build(self) -> bytes:
        return bytes(self.buf)


@pytest.fixture
def small_layout() -> SlabLayout:
    return SlabLayout(max_accounts=16)


@pytest.fixture
def slab_builder(small_layout: SlabLayout) -> Callable[..., SlabBuilder]:
    def make(layout: Optional[SlabLayout] = None) -> SlabBuilder:
        return SlabBuilder(layout or small_layout)

    return make
