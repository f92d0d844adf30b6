"""`state`: read-only decoding of a market slab.

Public API:
- `SlabLayout` / `DEFAULT_LAYOUT` (table capacity and derived offsets)
- `parse_header`, `parse_config`, `parse_params`, `parse_engine`
- `parse_account`, `is_account_used`, `parse_used_indices`, `iter_accounts`
- `parse_slab` -> `SlabSnapshot`, `snapshot_to_dict`
"""

from .layout import ACCOUNT_SIZE, ACCOUNTS_OFF, DEFAULT_LAYOUT, SLAB_MAGIC, SLAB_VERSION, SlabLayout
from .slab import (
    Account,
    AccountKind,
    EngineState,
    InsuranceFund,
    MarketConfig,
    RiskParams,
    SlabHeader,
    SlabSnapshot,
    is_account_used,
    iter_accounts,
    parse_account,
    parse_config,
    parse_engine,
    parse_header,
    parse_params,
    parse_slab,
    parse_used_indices,
    snapshot_to_dict,
)

__all__ = [
    "ACCOUNT_SIZE",
    "ACCOUNTS_OFF",
    "DEFAULT_LAYOUT",
    "SLAB_MAGIC",
    "SLAB_VERSION",
    "SlabLayout",
    "Account",
    "AccountKind",
    "EngineState",
    "InsuranceFund",
    "MarketConfig",
    "RiskParams",
    "SlabHeader",
    "SlabSnapshot",
    "is_account_used",
    "iter_accounts",
    "parse_account",
    "parse_config",
    "parse_engine",
    "parse_header",
    "parse_params",
    "parse_slab",
    "parse_used_indices",
    "snapshot_to_dict",
]
