"""
Read-only views over a market slab.

All readers are pure functions of the byte buffer: they never mutate it and
keep no state between calls. Every reader checks that the buffer length is
exactly a slab length, then the header magic/version, because all later
offsets are only meaningful for a slab of the expected format.

Slot occupancy is *inferred*: the program's own bitmap sits in the reserved
engine tail and is not decoded here, so a slot whose id, kind byte and owner
are all zero is treated as empty. ``is_account_used`` is the single
definition of that rule; every table scan goes through it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, is_dataclass
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from solders.pubkey import Pubkey

from ..abi.errors import BadMagicError, CorruptAccountError, UnsupportedVersionError
from .layout import (
    ACCOUNT,
    CONFIG,
    CONFIG_OFF,
    ENGINE,
    ENGINE_OFF,
    HEADER,
    HEADER_OFF,
    PARAMS,
    PARAMS_OFF,
    PUBKEY_ZERO,
    SLAB_MAGIC,
    SLAB_VERSION,
    SlabLayout,
    offset_of,
    read_region,
    subcon,
)

logger = logging.getLogger(__name__)

Buffer = bytes | bytearray | memoryview


class AccountKind(IntEnum):
    USER = 0
    LP = 1


@dataclass(frozen=True)
class SlabHeader:
    magic: int
    version: int
    bump: int
    admin: Pubkey
    nonce: int
    last_thr_update_slot: int
    resolved: bool


@dataclass(frozen=True)
class MarketConfig:
    collateral_mint: Pubkey
    vault_pubkey: Pubkey
    index_feed_id: Pubkey
    max_staleness_secs: int
    conf_filter_bps: int
    vault_authority_bump: int
    invert: int
    unit_scale: int
    funding_horizon_slots: int
    funding_k_bps: int
    funding_inv_scale_notional_e6: int
    funding_max_premium_bps: int
    funding_max_bps_per_slot: int
    thresh_floor: int
    thresh_risk_bps: int
    thresh_update_interval_slots: int
    thresh_step_bps: int
    thresh_alpha_bps: int
    thresh_min: int
    thresh_max: int
    thresh_min_step: int
    oracle_authority: Pubkey
    authority_price_e6: int
    authority_timestamp: int
    oracle_price_cap_e2bps: int
    last_effective_price_e6: int

    @property
    def oracle_authority_enabled(self) -> bool:
        """An all-zero authority means prices come only from the external feed."""
        return self.oracle_authority != Pubkey.default()


@dataclass(frozen=True)
class RiskParams:
    warmup_period_slots: int
    maintenance_margin_bps: int
    initial_margin_bps: int
    trading_fee_bps: int
    max_accounts: int
    new_account_fee: int
    risk_reduction_threshold: int
    maintenance_fee_per_slot: int
    max_crank_staleness_slots: int
    liquidation_fee_bps: int
    liquidation_fee_cap: int
    liquidation_buffer_bps: int
    min_liquidation_abs: int


@dataclass(frozen=True)
class InsuranceFund:
    balance: int
    fee_revenue: int


@dataclass(frozen=True)
class EngineState:
    vault: int
    insurance_fund: InsuranceFund
    current_slot: int
    funding_index_qpb_e6: int
    last_funding_slot: int
    funding_rate_bps_per_slot_last: int
    last_crank_slot: int
    max_crank_staleness_slots: int
    total_open_interest: int
    c_tot: int
    pnl_pos_tot: int
    crank_step: int
    last_sweep_start_slot: int
    last_sweep_complete_slot: int
    lifetime_liquidations: int
    lifetime_force_closes: int
    lifetime_force_realize_closes: int
    net_lp_pos: int
    lp_sum_abs: int
    warmed_pos_total: int
    warmed_neg_total: int
    warmup_insurance_reserved: int
    warmup_paused: bool
    risk_reduction_only: bool
    warmup_pause_slot: int
    loss_accum: int
    pending_profit_to_fund: int
    pending_unpaid_loss: int
    pending_epoch: int
    last_oracle_price_e6: int
    num_used_accounts: int
    next_account_id: int


@dataclass(frozen=True)
class Account:
    """One occupied slot of the account table."""

    index: int
    account_id: int
    capital: int
    kind: AccountKind
    pnl: int
    reserved_pnl: int
    warmup_started_at_slot: int
    warmup_slope_per_step: int
    position_size: int
    entry_price: int
    funding_index: int
    matcher_program: Pubkey
    matcher_context: Pubkey
    owner: Pubkey
    fee_credits: int
    last_fee_slot: int

    @property
    def is_lp(self) -> bool:
        return self.kind is AccountKind.LP

    @property
    def is_user(self) -> bool:
        return self.kind is AccountKind.USER


@dataclass(frozen=True)
class SlabSnapshot:
    """Every region of one slab, decoded together."""

    header: SlabHeader
    config: MarketConfig
    params: RiskParams
    engine: EngineState
    accounts: Mapping[int, Account] = field(default_factory=dict)
    corrupt_indices: Tuple[int, ...] = ()

    @property
    def used_indices(self) -> List[int]:
        return sorted(self.accounts)


def _layout_for(buf: Buffer, layout: Optional[SlabLayout]) -> SlabLayout:
    if layout is None:
        return SlabLayout.from_slab_len(len(buf))
    layout.require_len(len(buf))
    return layout


def _check_header(buf: Buffer) -> Dict[str, Any]:
    raw = read_region(HEADER, buf, HEADER_OFF)
    if raw["magic"] != SLAB_MAGIC:
        raise BadMagicError(raw["magic"], SLAB_MAGIC)
    if raw["version"] != SLAB_VERSION:
        raise UnsupportedVersionError(raw["version"], SLAB_VERSION)
    return raw


def _require_slab(buf: Buffer, layout: Optional[SlabLayout]) -> Tuple[SlabLayout, Dict[str, Any]]:
    """Exact length + magic + version gate shared by every reader."""
    layout = _layout_for(buf, layout)
    return layout, _check_header(buf)


def parse_header(buf: Buffer, *, layout: Optional[SlabLayout] = None) -> SlabHeader:
    _, raw = _require_slab(buf, layout)
    logger.debug("slab header: version=%d admin=%s", raw["version"], raw["admin"])
    return SlabHeader(**raw)


def parse_config(buf: Buffer, *, layout: Optional[SlabLayout] = None) -> MarketConfig:
    _require_slab(buf, layout)
    return MarketConfig(**read_region(CONFIG, buf, CONFIG_OFF))


def parse_params(buf: Buffer, *, layout: Optional[SlabLayout] = None) -> RiskParams:
    _require_slab(buf, layout)
    return RiskParams(**read_region(PARAMS, buf, PARAMS_OFF))


def parse_engine(buf: Buffer, *, layout: Optional[SlabLayout] = None) -> EngineState:
    _require_slab(buf, layout)
    raw = read_region(ENGINE, buf, ENGINE_OFF)
    raw["insurance_fund"] = InsuranceFund(
        balance=raw.pop("insurance_balance"),
        fee_revenue=raw.pop("insurance_fee_revenue"),
    )
    return EngineState(**raw)


_ID_OFF = offset_of(ACCOUNT, "account_id")
_KIND_OFF = offset_of(ACCOUNT, "kind")
_OWNER_OFF = offset_of(ACCOUNT, "owner")
_ZERO_ID = bytes(subcon(ACCOUNT, "account_id").sizeof())


def _slot_used(buf: Buffer, base: int) -> bool:
    # Empty slot == never written or wiped: id 0, kind byte 0, owner all-zero.
    view = memoryview(buf)
    if view[base + _ID_OFF : base + _ID_OFF + len(_ZERO_ID)] != _ZERO_ID:
        return True
    if view[base + _KIND_OFF] != 0:
        return True
    return view[base + _OWNER_OFF : base + _OWNER_OFF + len(PUBKEY_ZERO)] != PUBKEY_ZERO


def is_account_used(buf: Buffer, index: int, *, layout: Optional[SlabLayout] = None) -> bool:
    """Occupancy predicate for slot ``index`` (see module docstring for the inference rule)."""
    layout = _layout_for(buf, layout)
    base = layout.account_offset(index)
    _check_header(buf)
    return _slot_used(buf, base)


def parse_account(buf: Buffer, index: int, *, layout: Optional[SlabLayout] = None) -> Optional[Account]:
    """
    Decode slot ``index``.

    Returns:
        The account, or ``None`` when the slot is empty.

    Raises:
        SlabLayoutError: the buffer length does not match the layout, or the header does not match.
        AccountIndexError: ``index`` is outside ``[0, layout.max_accounts)``.
        CorruptAccountError: the slot is occupied but its kind byte is unknown.
    """
    layout = _layout_for(buf, layout)
    base = layout.account_offset(index)
    _check_header(buf)
    if not _slot_used(buf, base):
        return None
    raw = read_region(ACCOUNT, buf, base)
    try:
        kind = AccountKind(raw["kind"])
    except ValueError as exc:
        raise CorruptAccountError(index, f"unknown account kind byte {raw['kind']}") from exc
    raw["kind"] = kind
    return Account(index=index, **raw)


def parse_used_indices(buf: Buffer, *, layout: Optional[SlabLayout] = None) -> List[int]:
    """
    Ascending indices of every occupied slot.

    Rescans the whole table on each call; the result depends only on ``buf``.
    """
    layout, _ = _require_slab(buf, layout)
    used = [
        idx
        for idx in range(layout.max_accounts)
        if _slot_used(buf, layout.account_offset(idx))
    ]
    logger.debug("account table scan: %d of %d slots used", len(used), layout.max_accounts)
    return used


def iter_accounts(buf: Buffer, *, layout: Optional[SlabLayout] = None) -> Iterator[Tuple[int, Account]]:
    """Yield ``(index, account)`` for every occupied slot in ascending order."""
    layout = _layout_for(buf, layout)
    for idx in parse_used_indices(buf, layout=layout):
        acc = parse_account(buf, idx, layout=layout)
        if acc is not None:
            yield idx, acc


def parse_slab(buf: Buffer, *, layout: Optional[SlabLayout] = None, strict: bool = True) -> SlabSnapshot:
    """
    Decode every region of the slab.

    ``layout`` defaults to the one implied by ``len(buf)``; a length that no
    layout explains is rejected. With ``strict=False`` an unreadable account
    slot is recorded in ``corrupt_indices`` instead of aborting, so the
    aggregate regions can still be used. Layout errors always propagate.
    """
    layout = _layout_for(buf, layout)
    header = parse_header(buf, layout=layout)
    config = parse_config(buf, layout=layout)
    params = parse_params(buf, layout=layout)
    engine = parse_engine(buf, layout=layout)

    accounts: Dict[int, Account] = {}
    corrupt: List[int] = []
    for idx in parse_used_indices(buf, layout=layout):
        try:
            acc = parse_account(buf, idx, layout=layout)
        except CorruptAccountError:
            if strict:
                raise
            logger.debug("skipping corrupt account slot %d", idx)
            corrupt.append(idx)
            continue
        if acc is not None:
            accounts[idx] = acc

    return SlabSnapshot(
        header=header,
        config=config,
        params=params,
        engine=engine,
        accounts=accounts,
        corrupt_indices=tuple(corrupt),
    )


def _jsonable(value: Any) -> Any:
    if isinstance(value, Pubkey):
        return str(value)
    if isinstance(value, IntEnum):
        return value.name
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def snapshot_to_dict(snapshot: SlabSnapshot) -> Dict[str, Any]:
    """
    Plain-dict view of a snapshot for dumping.

    Addresses become base58 strings and ``AccountKind`` becomes its name;
    integers stay exact Python ints (callers serializing to JSON for tools that
    parse numbers as doubles should stringify them).
    """
    out = _jsonable(snapshot)
    out["used_indices"] = snapshot.used_indices
    return out
