"""Account-role templates for each instruction.

The program reads its accounts by position, so each template is an ordered
tuple that must never be sorted or deduplicated. The same address may
legitimately fill two roles (e.g. a user trading against their own LP).
"""

from __future__ import annotations

from typing import List, Mapping, NamedTuple, Sequence, Tuple

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .encode import PubkeyLike, to_pubkey
from .errors import AccountListLengthError
from .instructions import IxTag

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
SYSVAR_CLOCK_ID = Pubkey.from_string("SysvarC1ock11111111111111111111111111111111")
SYSVAR_RENT_ID = Pubkey.from_string("SysvarRent111111111111111111111111111111111")


class AccountSpec(NamedTuple):
    name: str
    signer: bool
    writable: bool


def _s(name: str, signer: bool = False, writable: bool = False) -> AccountSpec:
    return AccountSpec(name, signer, writable)


Template = Tuple[AccountSpec, ...]

ACCOUNTS_INIT_MARKET: Template = (
    _s("admin", True, True),
    _s("slab", writable=True),
    _s("mint"),
    _s("vault"),
    _s("token_program"),
    _s("clock"),
    _s("rent"),
    _s("dummy_ata"),
    _s("system_program"),
)

ACCOUNTS_INIT_USER: Template = (
    _s("user", True, True),
    _s("slab", writable=True),
    _s("user_ata", writable=True),
    _s("vault", writable=True),
    _s("token_program"),
)

ACCOUNTS_INIT_LP: Template = ACCOUNTS_INIT_USER

ACCOUNTS_DEPOSIT_COLLATERAL: Template = (
    _s("user", True, True),
    _s("slab", writable=True),
    _s("user_ata", writable=True),
    _s("vault", writable=True),
    _s("token_program"),
    _s("clock"),
)

ACCOUNTS_WITHDRAW_COLLATERAL: Template = (
    _s("user", True, True),
    _s("slab", writable=True),
    _s("vault", writable=True),
    _s("user_ata", writable=True),
    _s("vault_pda"),
    _s("token_program"),
    _s("clock"),
    _s("oracle"),
)

ACCOUNTS_KEEPER_CRANK: Template = (
    _s("caller", True, True),
    _s("slab", writable=True),
    _s("clock"),
    _s("oracle"),
)

ACCOUNTS_TRADE_NOCPI: Template = (
    _s("user", True, True),
    _s("lp", True, True),
    _s("slab", writable=True),
    _s("clock"),
    _s("oracle"),
)

# The LP owner does not sign: the matcher program authorizes the fill via the LP PDA.
ACCOUNTS_TRADE_CPI: Template = (
    _s("user", True, True),
    _s("lp_owner", writable=True),
    _s("slab", writable=True),
    _s("clock"),
    _s("oracle"),
    _s("matcher_program"),
    _s("matcher_context", writable=True),
    _s("lp_pda"),
)

ACCOUNTS_LIQUIDATE_AT_ORACLE: Template = (
    _s("caller", True, True),
    _s("slab", writable=True),
    _s("clock"),
    _s("oracle"),
)

ACCOUNTS_CLOSE_ACCOUNT: Template = ACCOUNTS_WITHDRAW_COLLATERAL

ACCOUNTS_TOPUP_INSURANCE: Template = (
    _s("user", True, True),
    _s("slab", writable=True),
    _s("user_ata", writable=True),
    _s("vault", writable=True),
    _s("token_program"),
)

_ADMIN_ONLY: Template = (
    _s("admin", signer=True),
    _s("slab", writable=True),
)

ACCOUNTS_SET_RISK_THRESHOLD: Template = _ADMIN_ONLY
ACCOUNTS_UPDATE_ADMIN: Template = _ADMIN_ONLY
ACCOUNTS_UPDATE_CONFIG: Template = _ADMIN_ONLY
ACCOUNTS_SET_MAINTENANCE_FEE: Template = _ADMIN_ONLY
ACCOUNTS_SET_ORACLE_AUTHORITY: Template = _ADMIN_ONLY
ACCOUNTS_PUSH_ORACLE_PRICE: Template = _ADMIN_ONLY
ACCOUNTS_SET_ORACLE_PRICE_CAP: Template = _ADMIN_ONLY
ACCOUNTS_RESOLVE_MARKET: Template = _ADMIN_ONLY

# Closing returns the slab's rent lamports to the admin.
ACCOUNTS_CLOSE_SLAB: Template = (
    _s("admin", True, True),
    _s("slab", writable=True),
)

ACCOUNTS_WITHDRAW_INSURANCE: Template = (
    _s("admin", True, True),
    _s("slab", writable=True),
    _s("admin_ata", writable=True),
    _s("vault", writable=True),
    _s("token_program"),
    _s("vault_pda"),
)

ACCOUNTS_BY_TAG: Mapping[IxTag, Template] = {
    IxTag.INIT_MARKET: ACCOUNTS_INIT_MARKET,
    IxTag.INIT_USER: ACCOUNTS_INIT_USER,
    IxTag.INIT_LP: ACCOUNTS_INIT_LP,
    IxTag.DEPOSIT_COLLATERAL: ACCOUNTS_DEPOSIT_COLLATERAL,
    IxTag.WITHDRAW_COLLATERAL: ACCOUNTS_WITHDRAW_COLLATERAL,
    IxTag.KEEPER_CRANK: ACCOUNTS_KEEPER_CRANK,
    IxTag.TRADE_NOCPI: ACCOUNTS_TRADE_NOCPI,
    IxTag.LIQUIDATE_AT_ORACLE: ACCOUNTS_LIQUIDATE_AT_ORACLE,
    IxTag.CLOSE_ACCOUNT: ACCOUNTS_CLOSE_ACCOUNT,
    IxTag.TOPUP_INSURANCE: ACCOUNTS_TOPUP_INSURANCE,
    IxTag.TRADE_CPI: ACCOUNTS_TRADE_CPI,
    IxTag.SET_RISK_THRESHOLD: ACCOUNTS_SET_RISK_THRESHOLD,
    IxTag.UPDATE_ADMIN: ACCOUNTS_UPDATE_ADMIN,
    IxTag.CLOSE_SLAB: ACCOUNTS_CLOSE_SLAB,
    IxTag.UPDATE_CONFIG: ACCOUNTS_UPDATE_CONFIG,
    IxTag.SET_MAINTENANCE_FEE: ACCOUNTS_SET_MAINTENANCE_FEE,
    IxTag.SET_ORACLE_AUTHORITY: ACCOUNTS_SET_ORACLE_AUTHORITY,
    IxTag.PUSH_ORACLE_PRICE: ACCOUNTS_PUSH_ORACLE_PRICE,
    IxTag.SET_ORACLE_PRICE_CAP: ACCOUNTS_SET_ORACLE_PRICE_CAP,
    IxTag.RESOLVE_MARKET: ACCOUNTS_RESOLVE_MARKET,
    IxTag.WITHDRAW_INSURANCE: ACCOUNTS_WITHDRAW_INSURANCE,
}


def build_account_metas(template: Sequence[AccountSpec], keys: Sequence[PubkeyLike]) -> List[AccountMeta]:
    """
    Pair each role in ``template`` with the key at the same position.

    Raises:
        AccountListLengthError: ``len(keys) != len(template)``; checked before any key is converted.
        CoercionError: a key is not a valid address.
    """
    if len(keys) != len(template):
        raise AccountListLengthError(len(template), len(keys), template="/".join(s.name for s in template))
    return [
        AccountMeta(pubkey=to_pubkey(key, name=role.name), is_signer=role.signer, is_writable=role.writable)
        for role, key in zip(template, keys)
    ]


def build_account_metas_by_name(template: Sequence[AccountSpec], keys: Mapping[str, PubkeyLike]) -> List[AccountMeta]:
    """Like ``build_account_metas`` but keyed by role name; every role must be present and no others."""
    names = [s.name for s in template]
    missing = [n for n in names if n not in keys]
    extra = sorted(set(keys) - set(names))
    if missing or extra:
        raise AccountListLengthError(
            len(template),
            len(keys),
            template=f"{'/'.join(names)} (missing={missing}, unexpected={extra})",
        )
    return build_account_metas(template, [keys[n] for n in names])


def build_ix(program_id: PubkeyLike, keys: Sequence[AccountMeta], data: bytes) -> Instruction:
    """Wrap metas and an encoded payload into a transaction instruction."""
    return Instruction(to_pubkey(program_id, name="program_id"), bytes(data), list(keys))
