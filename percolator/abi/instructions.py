"""Instruction payload encoders for the percolator program.

Every payload is one tag byte followed by the instruction's arguments in a
fixed order, each at a fixed width. There is no length prefix and nothing is
self-describing, so the ``WIRE`` table on each argument record *is* the
contract with the on-chain decoder.

Argument records normalize their inputs once, on construction: numbers go
through ``to_exact_int`` and are range-checked against their wire field,
addresses go through ``to_pubkey``. A record that exists is therefore
always encodable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum, unique
from typing import ClassVar, Dict, Tuple, Type, Union

from construct import Int8ul
from solders.pubkey import Pubkey

from .encode import (
    I64,
    I128,
    PUBKEY,
    U8,
    U16,
    U32,
    U64,
    U128,
    IntField,
    IntLike,
    PubkeyField,
    PubkeyLike,
    feed_id_bytes,
    to_pubkey,
)
from .errors import FieldOverflowError


@unique
class IxTag(IntEnum):
    """Leading discriminant byte of each instruction."""
    INIT_MARKET = 0
    INIT_USER = 1
    INIT_LP = 2
    DEPOSIT_COLLATERAL = 3
    WITHDRAW_COLLATERAL = 4
    KEEPER_CRANK = 5
    TRADE_NOCPI = 6
    LIQUIDATE_AT_ORACLE = 7
    CLOSE_ACCOUNT = 8
    TOPUP_INSURANCE = 9
    TRADE_CPI = 10
    SET_RISK_THRESHOLD = 11
    UPDATE_ADMIN = 12
    CLOSE_SLAB = 13
    UPDATE_CONFIG = 14
    SET_MAINTENANCE_FEE = 15
    SET_ORACLE_AUTHORITY = 16
    PUSH_ORACLE_PRICE = 17
    SET_ORACLE_PRICE_CAP = 18
    RESOLVE_MARKET = 19
    WITHDRAW_INSURANCE = 20


# Caller index that marks a keeper crank as permissionless.
PERMISSIONLESS_CALLER = 0xFFFF

# Wire-identical to U8/PUBKEY; distinct instances so normalization can treat
# them specially (bool flags, hex feed ids).
FLAG = IntField("flag", Int8ul, False)
FEED_ID = PubkeyField(name="feed_id")

WireSpec = Tuple[Tuple[str, Union[IntField, PubkeyField]], ...]


def _normalize(name: str, field: Union[IntField, PubkeyField], value: object) -> Union[int, Pubkey]:
    if field is FEED_ID:
        return Pubkey.from_bytes(feed_id_bytes(value, name=name))  # type: ignore[arg-type]
    if isinstance(field, PubkeyField):
        return to_pubkey(value, name=name)  # type: ignore[arg-type]
    if field is FLAG:
        if isinstance(value, bool):
            return int(value)
        v = U8.check(value, name=name)  # type: ignore[arg-type]
        if v not in (0, 1):
            raise FieldOverflowError(f"{name} must be 0 or 1, got {v}")
        return v
    return field.check(value, name=name)  # type: ignore[arg-type]


@dataclass(frozen=True)
class IxArgs:
    """Base for argument records: subclasses declare ``TAG`` and ``WIRE``."""

    TAG: ClassVar[IxTag]
    WIRE: ClassVar[WireSpec] = ()

    def __post_init__(self) -> None:
        for name, field in self.WIRE:
            object.__setattr__(self, name, _normalize(name, field, getattr(self, name)))

    def encode(self) -> bytes:
        parts = [bytes([int(self.TAG)])]
        for name, field in self.WIRE:
            parts.append(field.encode(getattr(self, name), name=name))  # type: ignore[arg-type]
        return b"".join(parts)


@dataclass(frozen=True)
class InitMarketArgs(IxArgs):
    """Market creation: oracle wiring followed by the full risk-parameter block."""

    TAG: ClassVar[IxTag] = IxTag.INIT_MARKET
    WIRE: ClassVar[WireSpec] = (
        ("admin", PUBKEY),
        ("collateral_mint", PUBKEY),
        ("index_feed_id", FEED_ID),
        ("max_staleness_secs", U64),
        ("conf_filter_bps", U16),
        ("invert", FLAG),
        ("unit_scale", U32),
        ("warmup_period_slots", U64),
        ("maintenance_margin_bps", U64),
        ("initial_margin_bps", U64),
        ("trading_fee_bps", U64),
        ("max_accounts", U64),
        ("new_account_fee", U128),
        ("risk_reduction_threshold", U128),
        ("maintenance_fee_per_slot", U128),
        ("max_crank_staleness_slots", U64),
        ("liquidation_fee_bps", U64),
        ("liquidation_fee_cap", U128),
        ("liquidation_buffer_bps", U64),
        ("min_liquidation_abs", U128),
    )

    admin: PubkeyLike
    collateral_mint: PubkeyLike
    index_feed_id: PubkeyLike
    max_staleness_secs: IntLike
    conf_filter_bps: IntLike
    invert: Union[bool, IntLike]
    unit_scale: IntLike
    warmup_period_slots: IntLike
    maintenance_margin_bps: IntLike
    initial_margin_bps: IntLike
    trading_fee_bps: IntLike
    max_accounts: IntLike
    new_account_fee: IntLike
    risk_reduction_threshold: IntLike
    maintenance_fee_per_slot: IntLike
    max_crank_staleness_slots: IntLike
    liquidation_fee_bps: IntLike
    liquidation_fee_cap: IntLike
    liquidation_buffer_bps: IntLike
    min_liquidation_abs: IntLike


@dataclass(frozen=True)
class InitUserArgs(IxArgs):
    TAG: ClassVar[IxTag] = IxTag.INIT_USER
    WIRE: ClassVar[WireSpec] = (("fee_payment", U64),)

    fee_payment: IntLike


@dataclass(frozen=True)
class InitLpArgs(IxArgs):
    TAG: ClassVar[IxTag] = IxTag.INIT_LP
    WIRE: ClassVar[WireSpec] = (
        ("matcher_program", PUBKEY),
        ("matcher_context", PUBKEY),
        ("fee_payment", U64),
    )

    matcher_program: PubkeyLike
    matcher_context: PubkeyLike
    fee_payment: IntLike


@dataclass(frozen=True)
class DepositCollateralArgs(IxArgs):
    TAG: ClassVar[IxTag] = IxTag.DEPOSIT_COLLATERAL
    WIRE: ClassVar[WireSpec] = (("user_idx", U16), ("amount", U64))

    user_idx: IntLike
    amount: IntLike


@dataclass(frozen=True)
class WithdrawCollateralArgs(IxArgs):
    TAG: ClassVar[IxTag] = IxTag.WITHDRAW_COLLATERAL
    WIRE: ClassVar[WireSpec] = (("user_idx", U16), ("amount", U64))

    user_idx: IntLike
    amount: IntLike


@dataclass(frozen=True)
class KeeperCrankArgs(IxArgs):
    """``caller_idx == PERMISSIONLESS_CALLER`` lets anyone crank."""

    TAG: ClassVar[IxTag] = IxTag.KEEPER_CRANK
    WIRE: ClassVar[WireSpec] = (("caller_idx", U16), ("allow_panic", FLAG))

    caller_idx: IntLike = PERMISSIONLESS_CALLER
    allow_panic: Union[bool, IntLike] = False

    @property
    def permissionless(self) -> bool:
        return self.caller_idx == PERMISSIONLESS_CALLER


@dataclass(frozen=True)
class TradeNoCpiArgs(IxArgs):
    """``size`` is signed: positive buys from the LP, negative sells to it."""

    TAG: ClassVar[IxTag] = IxTag.TRADE_NOCPI
    WIRE: ClassVar[WireSpec] = (("lp_idx", U16), ("user_idx", U16), ("size", I128))

    lp_idx: IntLike
    user_idx: IntLike
    size: IntLike


@dataclass(frozen=True)
class TradeCpiArgs(IxArgs):
    """Same payload as ``TradeNoCpiArgs``; the LP's matcher program prices the fill."""

    TAG: ClassVar[IxTag] = IxTag.TRADE_CPI
    WIRE: ClassVar[WireSpec] = (("lp_idx", U16), ("user_idx", U16), ("size", I128))

    lp_idx: IntLike
    user_idx: IntLike
    size: IntLike


@dataclass(frozen=True)
class LiquidateAtOracleArgs(IxArgs):
    TAG: ClassVar[IxTag] = IxTag.LIQUIDATE_AT_ORACLE
    WIRE: ClassVar[WireSpec] = (("target_idx", U16),)

    target_idx: IntLike


@dataclass(frozen=True)
class CloseAccountArgs(IxArgs):
    TAG: ClassVar[IxTag] = IxTag.CLOSE_ACCOUNT
    WIRE: ClassVar[WireSpec] = (("user_idx", U16),)

    user_idx: IntLike


@dataclass(frozen=True)
class TopUpInsuranceArgs(IxArgs):
    TAG: ClassVar[IxTag] = IxTag.TOPUP_INSURANCE
    WIRE: ClassVar[WireSpec] = (("amount", U64),)

    amount: IntLike


@dataclass(frozen=True)
class SetRiskThresholdArgs(IxArgs):
    TAG: ClassVar[IxTag] = IxTag.SET_RISK_THRESHOLD
    WIRE: ClassVar[WireSpec] = (("new_threshold", U128),)

    new_threshold: IntLike


@dataclass(frozen=True)
class UpdateAdminArgs(IxArgs):
    TAG: ClassVar[IxTag] = IxTag.UPDATE_ADMIN
    WIRE: ClassVar[WireSpec] = (("new_admin", PUBKEY),)

    new_admin: PubkeyLike


@dataclass(frozen=True)
class UpdateConfigArgs(IxArgs):
    """Funding curve and risk-threshold adjustment knobs, replaced as a block."""

    TAG: ClassVar[IxTag] = IxTag.UPDATE_CONFIG
    WIRE: ClassVar[WireSpec] = (
        ("funding_horizon_slots", U64),
        ("funding_k_bps", U64),
        ("funding_inv_scale_notional_e6", U128),
        ("funding_max_premium_bps", I64),
        ("funding_max_bps_per_slot", I64),
        ("thresh_floor", U128),
        ("thresh_risk_bps", U64),
        ("thresh_update_interval_slots", U64),
        ("thresh_step_bps", U64),
        ("thresh_alpha_bps", U64),
        ("thresh_min", U128),
        ("thresh_max", U128),
        ("thresh_min_step", U128),
    )

    funding_horizon_slots: IntLike
    funding_k_bps: IntLike
    funding_inv_scale_notional_e6: IntLike
    funding_max_premium_bps: IntLike
    funding_max_bps_per_slot: IntLike
    thresh_floor: IntLike
    thresh_risk_bps: IntLike
    thresh_update_interval_slots: IntLike
    thresh_step_bps: IntLike
    thresh_alpha_bps: IntLike
    thresh_min: IntLike
    thresh_max: IntLike
    thresh_min_step: IntLike


@dataclass(frozen=True)
class SetMaintenanceFeeArgs(IxArgs):
    TAG: ClassVar[IxTag] = IxTag.SET_MAINTENANCE_FEE
    WIRE: ClassVar[WireSpec] = (("new_fee", U128),)

    new_fee: IntLike


@dataclass(frozen=True)
class SetOracleAuthorityArgs(IxArgs):
    """Pass ``Pubkey.default()`` (all zeros) to disable the authority."""

    TAG: ClassVar[IxTag] = IxTag.SET_ORACLE_AUTHORITY
    WIRE: ClassVar[WireSpec] = (("new_authority", PUBKEY),)

    new_authority: PubkeyLike

    @property
    def disables_authority(self) -> bool:
        return self.new_authority == Pubkey.default()


@dataclass(frozen=True)
class PushOraclePriceArgs(IxArgs):
    TAG: ClassVar[IxTag] = IxTag.PUSH_ORACLE_PRICE
    WIRE: ClassVar[WireSpec] = (("price_e6", U64), ("timestamp", I64))

    price_e6: IntLike
    timestamp: IntLike


@dataclass(frozen=True)
class SetOraclePriceCapArgs(IxArgs):
    """Per-update price move limit in units of 0.01 bps; 0 removes the cap."""

    TAG: ClassVar[IxTag] = IxTag.SET_ORACLE_PRICE_CAP
    WIRE: ClassVar[WireSpec] = (("max_change_e2bps", U64),)

    max_change_e2bps: IntLike


ARGS_BY_TAG: Dict[IxTag, Type[IxArgs]] = {
    cls.TAG: cls
    for cls in (
        InitMarketArgs,
        InitUserArgs,
        InitLpArgs,
        DepositCollateralArgs,
        WithdrawCollateralArgs,
        KeeperCrankArgs,
        TradeNoCpiArgs,
        TradeCpiArgs,
        LiquidateAtOracleArgs,
        CloseAccountArgs,
        TopUpInsuranceArgs,
        SetRiskThresholdArgs,
        UpdateAdminArgs,
        UpdateConfigArgs,
        SetMaintenanceFeeArgs,
        SetOracleAuthorityArgs,
        PushOraclePriceArgs,
        SetOraclePriceCapArgs,
    )
}

# Instructions whose payload is the tag byte alone.
TAG_ONLY = frozenset({IxTag.CLOSE_SLAB, IxTag.RESOLVE_MARKET, IxTag.WITHDRAW_INSURANCE})


def instruction_len(tag: IxTag) -> int:
    """Exact payload length in bytes for ``tag``, tag byte included."""
    tag = IxTag(tag)
    if tag in TAG_ONLY:
        return 1
    return 1 + sum(field.width for _, field in ARGS_BY_TAG[tag].WIRE)


def encode_instruction(args: IxArgs) -> bytes:
    return args.encode()


def encode_init_market(args: InitMarketArgs) -> bytes:
    return args.encode()


def encode_init_user(args: InitUserArgs) -> bytes:
    return args.encode()


def encode_init_lp(args: InitLpArgs) -> bytes:
    return args.encode()


def encode_deposit_collateral(args: DepositCollateralArgs) -> bytes:
    return args.encode()


def encode_withdraw_collateral(args: WithdrawCollateralArgs) -> bytes:
    return args.encode()


def encode_keeper_crank(args: KeeperCrankArgs) -> bytes:
    return args.encode()


def encode_trade_nocpi(args: TradeNoCpiArgs) -> bytes:
    return args.encode()


def encode_trade_cpi(args: TradeCpiArgs) -> bytes:
    return args.encode()


def encode_liquidate_at_oracle(args: LiquidateAtOracleArgs) -> bytes:
    return args.encode()


def encode_close_account(args: CloseAccountArgs) -> bytes:
    return args.encode()


def encode_topup_insurance(args: TopUpInsuranceArgs) -> bytes:
    return args.encode()


def encode_set_risk_threshold(args: SetRiskThresholdArgs) -> bytes:
    return args.encode()


def encode_update_admin(args: UpdateAdminArgs) -> bytes:
    return args.encode()


def encode_close_slab() -> bytes:
    return bytes([IxTag.CLOSE_SLAB])


def encode_update_config(args: UpdateConfigArgs) -> bytes:
    return args.encode()


def encode_set_maintenance_fee(args: SetMaintenanceFeeArgs) -> bytes:
    return args.encode()


def encode_set_oracle_authority(args: SetOracleAuthorityArgs) -> bytes:
    return args.encode()


def encode_push_oracle_price(args: PushOraclePriceArgs) -> bytes:
    return args.encode()


def encode_set_oracle_price_cap(args: SetOraclePriceCapArgs) -> bytes:
    return args.encode()


def encode_resolve_market() -> bytes:
    return bytes([IxTag.RESOLVE_MARKET])


def encode_withdraw_insurance() -> bytes:
    return bytes([IxTag.WITHDRAW_INSURANCE])
