"""`abi`: wire-level codec, instruction payloads and account-role templates.

Public API:
- primitive fields (`U8` .. `I128`, `PUBKEY`) and `to_exact_int` / `to_pubkey`
- `u128_to_i128` / `i128_to_u128` for signed 128-bit reinterpretation
- one `encode_*` function and argument record per instruction (`IxTag`)
- `ACCOUNTS_*` role templates, `build_account_metas`, `build_ix`
"""

from .accounts import (
    ACCOUNTS_BY_TAG,
    AccountSpec,
    build_account_metas,
    build_account_metas_by_name,
    build_ix,
)
from .encode import (
    I64,
    I128,
    PUBKEY,
    U8,
    U16,
    U32,
    U64,
    U128,
    U128_AS_I128,
    IntLike,
    PubkeyLike,
    feed_id_bytes,
    i128_to_u128,
    to_exact_int,
    to_pubkey,
    u128_to_i128,
)
from .errors import (
    AbiRangeError,
    AccountIndexError,
    AccountListLengthError,
    BadMagicError,
    BufferTooShortError,
    CoercionError,
    ConfigError,
    CorruptAccountError,
    FieldOverflowError,
    PdaCollisionError,
    PercolatorError,
    SlabLayoutError,
    SlabSizeError,
    UnsupportedVersionError,
)
from .instructions import (
    ARGS_BY_TAG,
    PERMISSIONLESS_CALLER,
    CloseAccountArgs,
    DepositCollateralArgs,
    InitLpArgs,
    InitMarketArgs,
    InitUserArgs,
    IxArgs,
    IxTag,
    KeeperCrankArgs,
    LiquidateAtOracleArgs,
    PushOraclePriceArgs,
    SetMaintenanceFeeArgs,
    SetOracleAuthorityArgs,
    SetOraclePriceCapArgs,
    SetRiskThresholdArgs,
    TopUpInsuranceArgs,
    TradeCpiArgs,
    TradeNoCpiArgs,
    UpdateAdminArgs,
    UpdateConfigArgs,
    WithdrawCollateralArgs,
    encode_instruction,
    instruction_len,
)

__all__ = [
    "ACCOUNTS_BY_TAG",
    "AccountSpec",
    "build_account_metas",
    "build_account_metas_by_name",
    "build_ix",
    "I64",
    "I128",
    "PUBKEY",
    "U8",
    "U16",
    "U32",
    "U64",
    "U128",
    "U128_AS_I128",
    "IntLike",
    "PubkeyLike",
    "feed_id_bytes",
    "i128_to_u128",
    "to_exact_int",
    "to_pubkey",
    "u128_to_i128",
    "AbiRangeError",
    "AccountIndexError",
    "AccountListLengthError",
    "BadMagicError",
    "BufferTooShortError",
    "CoercionError",
    "ConfigError",
    "CorruptAccountError",
    "FieldOverflowError",
    "PdaCollisionError",
    "PercolatorError",
    "SlabLayoutError",
    "SlabSizeError",
    "UnsupportedVersionError",
    "ARGS_BY_TAG",
    "PERMISSIONLESS_CALLER",
    "CloseAccountArgs",
    "DepositCollateralArgs",
    "InitLpArgs",
    "InitMarketArgs",
    "InitUserArgs",
    "IxArgs",
    "IxTag",
    "KeeperCrankArgs",
    "LiquidateAtOracleArgs",
    "PushOraclePriceArgs",
    "SetMaintenanceFeeArgs",
    "SetOracleAuthorityArgs",
    "SetOraclePriceCapArgs",
    "SetRiskThresholdArgs",
    "TopUpInsuranceArgs",
    "TradeCpiArgs",
    "TradeNoCpiArgs",
    "UpdateAdminArgs",
    "UpdateConfigArgs",
    "WithdrawCollateralArgs",
    "encode_instruction",
    "instruction_len",
]
