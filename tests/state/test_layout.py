"""Tests for percolator/state/layout.py: pinned slab offsets."""

from __future__ import annotations

import pytest
from construct import Int8ul, Int64ul, Padding, Struct

from percolator.abi.errors import AccountIndexError, BufferTooShortError, SlabLayoutError, SlabSizeError
from percolator.state.layout import (
    ACCOUNT,
    ACCOUNT_SIZE,
    ACCOUNTS_OFF,
    CONFIG,
    CONFIG_LEN,
    CONFIG_OFF,
    DEFAULT_LAYOUT,
    ENGINE,
    ENGINE_LEN,
    ENGINE_OFF,
    ENGINE_RESERVED_LEN,
    HEADER,
    HEADER_LEN,
    PARAMS,
    PARAMS_LEN,
    PARAMS_OFF,
    SlabLayout,
    field_names,
    offset_of,
    read_region,
    region_offsets,
)


class TestRegionOffsets:
    def test_fixed_regions(self):
        assert (HEADER_LEN, CONFIG_OFF, CONFIG_LEN) == (72, 72, 320)
        assert (PARAMS_OFF, PARAMS_LEN) == (392, 144)
        assert (ENGINE_OFF, ENGINE_LEN) == (536, 376 + ENGINE_RESERVED_LEN)
        assert (ACCOUNTS_OFF, ACCOUNT_SIZE) == (9520, 240)

    def test_account_table_follows_engine_tail(self):
        # Program engine struct starts at 392 (params first); its account array sits 9128 bytes in.
        assert ACCOUNTS_OFF == PARAMS_OFF + 9128

    def test_regions_are_contiguous(self):
        cursor = 0
        for off, length in region_offsets().values():
            assert off == cursor
            cursor += length
        assert cursor == ACCOUNTS_OFF

    def test_header_fields(self):
        assert offset_of(HEADER, "magic") == 0
        assert offset_of(HEADER, "version") == 8
        assert offset_of(HEADER, "bump") == 12
        assert offset_of(HEADER, "admin") == 16
        assert offset_of(HEADER, "nonce") == 48
        assert offset_of(HEADER, "last_thr_update_slot") == 56
        assert offset_of(HEADER, "resolved") == 64

    def test_account_fields(self):
        expected = {
            "account_id": 0,
            "capital": 8,
            "kind": 24,
            "pnl": 32,
            "reserved_pnl": 48,
            "warmup_started_at_slot": 56,
            "warmup_slope_per_step": 64,
            "position_size": 80,
            "entry_price": 96,
            "funding_index": 104,
            "matcher_program": 120,
            "matcher_context": 152,
            "owner": 184,
            "fee_credits": 216,
            "last_fee_slot": 232,
        }
        assert {n: offset_of(ACCOUNT, n) for n in field_names(ACCOUNT)} == expected

    def test_params_follow_init_market_order(self):
        names = field_names(PARAMS)
        assert names[0] == "warmup_period_slots"
        assert names[-1] == "min_liquidation_abs"
        assert offset_of(PARAMS, "new_account_fee") == 40

    def test_engine_fields(self):
        assert offset_of(ENGINE, "insurance_balance") == 16
        assert offset_of(ENGINE, "num_used_accounts") == 360
        assert offset_of(ENGINE, "next_account_id") == 368

    def test_wide_fields_are_eight_byte_aligned(self):
        for region in (HEADER, CONFIG, PARAMS, ENGINE, ACCOUNT):
            for sc in region.subcons:
                if sc.name and sc.sizeof() >= 8:
                    assert offset_of(region, sc.name) % 8 == 0, sc.name

    def test_config_oracle_authority(self):
        assert offset_of(CONFIG, "oracle_authority") == 256
        assert offset_of(CONFIG, "last_effective_price_e6") == 312

    def test_padding_is_skipped(self):
        r = Struct("a" / Int8ul, Padding(7), "b" / Int64ul)
        assert field_names(r) == ("a", "b")
        assert offset_of(r, "b") == 8
        assert read_region(r, b"\xff" + bytes(15) + b"\x05" + bytes(7), 8) == {"a": 0, "b": 5}

    def test_read_region_past_end(self):
        with pytest.raises(BufferTooShortError):
            read_region(HEADER, bytes(HEADER_LEN - 1), 0)


class TestSlabLayout:
    def test_default_length(self):
        assert DEFAULT_LAYOUT.max_accounts == 4096
        assert DEFAULT_LAYOUT.slab_len == 992_560

    def test_account_offset(self):
        layout = SlabLayout(max_accounts=4)
        assert layout.account_offset(0) == ACCOUNTS_OFF
        assert layout.account_offset(3) == ACCOUNTS_OFF + 3 * ACCOUNT_SIZE

    @pytest.mark.parametrize("index", [-1, 4, 100])
    def test_account_offset_out_of_range(self, index):
        with pytest.raises(AccountIndexError) as ei:
            SlabLayout(max_accounts=4).account_offset(index)
        assert ei.value.index == index
        assert ei.value.capacity == 4

    def test_range_error_is_index_error(self):
        with pytest.raises(IndexError):
            SlabLayout(max_accounts=1).account_offset(1)

    def test_non_int_index(self):
        with pytest.raises(TypeError):
            DEFAULT_LAYOUT.account_offset(True)
        with pytest.raises(TypeError):
            DEFAULT_LAYOUT.account_offset(1.0)  # type: ignore[arg-type]

    @pytest.mark.parametrize("n", [0, -1, 65537])
    def test_capacity_bounds(self, n):
        with pytest.raises(ValueError):
            SlabLayout(max_accounts=n)

    def test_from_slab_len(self):
        assert SlabLayout.from_slab_len(992_560) == DEFAULT_LAYOUT
        assert SlabLayout.from_slab_len(SlabLayout(max_accounts=64).slab_len) == SlabLayout(max_accounts=64)

    @pytest.mark.parametrize("length", [992_560 + 1, 992_560 - 8, ACCOUNTS_OFF + 65537 * ACCOUNT_SIZE])
    def test_from_slab_len_rejects_unexplained_lengths(self, length):
        with pytest.raises(SlabSizeError):
            SlabLayout.from_slab_len(length)

    def test_from_slab_len_rejects_table_without_slots(self):
        with pytest.raises(BufferTooShortError):
            SlabLayout.from_slab_len(ACCOUNTS_OFF)

    def test_require_len_is_exact(self):
        DEFAULT_LAYOUT.require_len(992_560)
        with pytest.raises(BufferTooShortError):
            DEFAULT_LAYOUT.require_len(992_559)
        with pytest.raises(SlabSizeError) as ei:
            DEFAULT_LAYOUT.require_len(992_568)
        assert (ei.value.found, ei.value.expected) == (992_568, 992_560)

    def test_size_errors_are_layout_errors(self):
        with pytest.raises(SlabLayoutError):
            SlabLayout.from_slab_len(992_561)
