"""
Binary layout of a market slab.

The slab is one fixed-length account owned by the on-chain program:

    [ header | config | risk params | engine | account table ]

Each region is a ``construct.Struct`` with explicit ``Padding``; offsets are
derived from the declarations. Fields follow the program's 8-byte alignment
(the BPF target aligns u128/i128 to 8, not 16). Nothing in the slab is
length-prefixed, so these tables are the whole contract: a drifted width
shifts every later field.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from construct import Construct, Flag, Int8ul, Int16ul, Int32ul, Int64sl, Int64ul, Padding, Struct

from ..abi.encode import I128_LE, PUBKEY_BYTES, PUBKEY_LEN, U128_AS_I128_LE, U128_LE, U16
from ..abi.errors import AccountIndexError, BufferTooShortError, SlabSizeError


SLAB_MAGIC = 0x504552434F4C4154  # b"PERCOLAT" read as a big-endian u64
SLAB_VERSION = 1
MAX_ACCOUNTS = 4096
PUBKEY_ZERO = bytes(PUBKEY_LEN)

# Occupancy bitmap and free-list kept by the program after the engine
# aggregates. Not decoded; it only pushes the account table to its offset.
ENGINE_RESERVED_LEN = 8608


HEADER = Struct(
    "magic" / Int64ul,
    "version" / Int32ul,
    "bump" / Int8ul,
    Padding(3),
    "admin" / PUBKEY_BYTES,
    "nonce" / Int64ul,
    "last_thr_update_slot" / Int64ul,
    "resolved" / Flag,
    Padding(7),
)

CONFIG = Struct(
    "collateral_mint" / PUBKEY_BYTES,
    "vault_pubkey" / PUBKEY_BYTES,
    "index_feed_id" / PUBKEY_BYTES,
    "max_staleness_secs" / Int64ul,
    "conf_filter_bps" / Int16ul,
    "vault_authority_bump" / Int8ul,
    "invert" / Int8ul,
    "unit_scale" / Int32ul,
    # funding curve
    "funding_horizon_slots" / Int64ul,
    "funding_k_bps" / Int64ul,
    "funding_inv_scale_notional_e6" / U128_LE,
    "funding_max_premium_bps" / Int64sl,
    "funding_max_bps_per_slot" / Int64sl,
    # risk-threshold adjustment
    "thresh_floor" / U128_LE,
    "thresh_risk_bps" / Int64ul,
    "thresh_update_interval_slots" / Int64ul,
    "thresh_step_bps" / Int64ul,
    "thresh_alpha_bps" / Int64ul,
    "thresh_min" / U128_LE,
    "thresh_max" / U128_LE,
    "thresh_min_step" / U128_LE,
    # oracle authority override
    "oracle_authority" / PUBKEY_BYTES,
    "authority_price_e6" / Int64ul,
    "authority_timestamp" / Int64sl,
    "oracle_price_cap_e2bps" / Int64ul,
    "last_effective_price_e6" / Int64ul,
)

# Same field order as the risk-parameter block of InitMarket.
PARAMS = Struct(
    "warmup_period_slots" / Int64ul,
    "maintenance_margin_bps" / Int64ul,
    "initial_margin_bps" / Int64ul,
    "trading_fee_bps" / Int64ul,
    "max_accounts" / Int64ul,
    "new_account_fee" / U128_LE,
    "risk_reduction_threshold" / U128_LE,
    "maintenance_fee_per_slot" / U128_LE,
    "max_crank_staleness_slots" / Int64ul,
    "liquidation_fee_bps" / Int64ul,
    "liquidation_fee_cap" / U128_LE,
    "liquidation_buffer_bps" / Int64ul,
    "min_liquidation_abs" / U128_LE,
)

ENGINE = Struct(
    "vault" / U128_LE,
    "insurance_balance" / U128_LE,
    "insurance_fee_revenue" / U128_LE,
    "current_slot" / Int64ul,
    "funding_index_qpb_e6" / I128_LE,
    "last_funding_slot" / Int64ul,
    "funding_rate_bps_per_slot_last" / Int64sl,
    "last_crank_slot" / Int64ul,
    "max_crank_staleness_slots" / Int64ul,
    "total_open_interest" / U128_LE,
    "c_tot" / U128_LE,
    "pnl_pos_tot" / U128_LE,
    "crank_step" / Int64ul,
    "last_sweep_start_slot" / Int64ul,
    "last_sweep_complete_slot" / Int64ul,
    "lifetime_liquidations" / Int64ul,
    "lifetime_force_closes" / Int64ul,
    "lifetime_force_realize_closes" / Int64ul,
    "net_lp_pos" / I128_LE,
    "lp_sum_abs" / U128_LE,
    "warmed_pos_total" / U128_LE,
    "warmed_neg_total" / U128_LE,
    "warmup_insurance_reserved" / U128_LE,
    "warmup_paused" / Flag,
    "risk_reduction_only" / Flag,
    Padding(6),
    "warmup_pause_slot" / Int64ul,
    "loss_accum" / U128_LE,
    "pending_profit_to_fund" / U128_LE,
    "pending_unpaid_loss" / U128_LE,
    "pending_epoch" / Int64ul,
    "last_oracle_price_e6" / Int64ul,
    "num_used_accounts" / Int16ul,
    Padding(6),
    "next_account_id" / Int64ul,
    Padding(ENGINE_RESERVED_LEN),
)

ACCOUNT = Struct(
    "account_id" / Int64ul,
    "capital" / U128_LE,
    "kind" / Int8ul,
    Padding(7),
    "pnl" / U128_AS_I128_LE,
    "reserved_pnl" / Int64ul,
    "warmup_started_at_slot" / Int64ul,
    "warmup_slope_per_step" / U128_LE,
    "position_size" / I128_LE,
    "entry_price" / Int64ul,
    "funding_index" / I128_LE,
    "matcher_program" / PUBKEY_BYTES,
    "matcher_context" / PUBKEY_BYTES,
    "owner" / PUBKEY_BYTES,
    "fee_credits" / I128_LE,
    "last_fee_slot" / Int64ul,
)


def field_names(region: Struct) -> Tuple[str, ...]:
    """Named fields of ``region`` in declaration order; padding is skipped."""
    return tuple(sc.name for sc in region.subcons if sc.name)


def field_offsets(region: Struct) -> Dict[str, int]:
    """Offset of every named field relative to the start of ``region``."""
    out: Dict[str, int] = {}
    cursor = 0
    for sc in region.subcons:
        if sc.name:
            out[sc.name] = cursor
        cursor += sc.sizeof()
    return out


def offset_of(region: Struct, name: str) -> int:
    return field_offsets(region)[name]


def subcon(region: Struct, name: str) -> Construct:
    for sc in region.subcons:
        if sc.name == name:
            return sc
    raise KeyError(name)


def read_region(region: Struct, buf: bytes | bytearray | memoryview, base: int) -> Dict[str, Any]:
    """Decode every named field of ``region`` starting at absolute offset ``base``."""
    end = base + region.sizeof()
    if end > len(buf):
        raise BufferTooShortError(end, len(buf), what=f"region at offset {base}")
    parsed = region.parse(bytes(buf[base:end]))
    return {name: parsed[name] for name in field_names(region)}


HEADER_OFF = 0
HEADER_LEN = HEADER.sizeof()
CONFIG_OFF = HEADER_OFF + HEADER_LEN
CONFIG_LEN = CONFIG.sizeof()
PARAMS_OFF = CONFIG_OFF + CONFIG_LEN
PARAMS_LEN = PARAMS.sizeof()
ENGINE_OFF = PARAMS_OFF + PARAMS_LEN
ENGINE_LEN = ENGINE.sizeof()
ACCOUNTS_OFF = ENGINE_OFF + ENGINE_LEN
ACCOUNT_SIZE = ACCOUNT.sizeof()


@dataclass(frozen=True)
class SlabLayout:
    """Slab geometry for a given account-table capacity."""

    max_accounts: int = MAX_ACCOUNTS

    def __post_init__(self) -> None:
        if not isinstance(self.max_accounts, int) or isinstance(self.max_accounts, bool):
            raise TypeError("max_accounts must be an int")
        # Slot indices travel as u16 on the wire.
        if not 0 < self.max_accounts <= U16.max_value + 1:
            raise ValueError(f"max_accounts must be in [1, {U16.max_value + 1}], got {self.max_accounts}")

    @property
    def slab_len(self) -> int:
        return ACCOUNTS_OFF + self.max_accounts * ACCOUNT_SIZE

    def account_offset(self, index: int) -> int:
        """Absolute byte offset of slot ``index``; raises ``AccountIndexError`` when out of range."""
        if not isinstance(index, int) or isinstance(index, bool):
            raise TypeError(f"account index must be an int, got {type(index).__name__}")
        if not 0 <= index < self.max_accounts:
            raise AccountIndexError(index, self.max_accounts)
        return ACCOUNTS_OFF + index * ACCOUNT_SIZE

    def require_len(self, length: int) -> None:
        """Reject any buffer length other than exactly ``slab_len``."""
        if length < self.slab_len:
            raise BufferTooShortError(self.slab_len, length, what="slab")
        if length != self.slab_len:
            raise SlabSizeError(length, self.slab_len)

    @classmethod
    def from_slab_len(cls, length: int) -> "SlabLayout":
        """Infer the table capacity from a buffer length; the length must match exactly."""
        smallest = ACCOUNTS_OFF + ACCOUNT_SIZE
        if length < smallest:
            raise BufferTooShortError(smallest, length, what="slab")
        table = length - ACCOUNTS_OFF
        if table % ACCOUNT_SIZE or table // ACCOUNT_SIZE > U16.max_value + 1:
            raise SlabSizeError(length, None, detail=f"not {ACCOUNTS_OFF} + n * {ACCOUNT_SIZE} for n in [1, 65536]")
        return cls(max_accounts=table // ACCOUNT_SIZE)


DEFAULT_LAYOUT = SlabLayout()


def region_offsets() -> Mapping[str, Tuple[int, int]]:
    """Absolute ``(offset, length)`` of every fixed region, in slab order."""
    return {
        "header": (HEADER_OFF, HEADER_LEN),
        "config": (CONFIG_OFF, CONFIG_LEN),
        "params": (PARAMS_OFF, PARAMS_LEN),
        "engine": (ENGINE_OFF, ENGINE_LEN),
    }
