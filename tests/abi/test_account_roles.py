# [TESTER] v1

from __future__ import annotations

import pytest
from solders.instruction import AccountMeta
from solders.pubkey import Pubkey

from percolator.abi.accounts import (
    ACCOUNTS_BY_TAG,
    ACCOUNTS_CLOSE_SLAB,
    ACCOUNTS_DEPOSIT_COLLATERAL,
    ACCOUNTS_INIT_MARKET,
    ACCOUNTS_KEEPER_CRANK,
    ACCOUNTS_PUSH_ORACLE_PRICE,
    ACCOUNTS_TRADE_CPI,
    ACCOUNTS_TRADE_NOCPI,
    ACCOUNTS_WITHDRAW_COLLATERAL,
    SYSVAR_CLOCK_ID,
    TOKEN_PROGRAM_ID,
    build_account_metas,
    build_account_metas_by_name,
    build_ix,
)
from percolator.abi.errors import AccountListLengthError, CoercionError
from percolator.abi.instructions import DepositCollateralArgs, IxTag


def _keys(n: int) -> list[Pubkey]:
    return [Pubkey.new_unique() for _ in range(n)]


def test_every_instruction_has_a_template() -> None:
    assert set(ACCOUNTS_BY_TAG) == set(IxTag)
    for tag, template in ACCOUNTS_BY_TAG.items():
        slab = [role for role in template if role.name == "slab"]
        assert len(slab) == 1, tag
        assert slab[0].writable and not slab[0].signer, tag


def test_trade_templates_put_slab_after_both_parties() -> None:
    for tag in (IxTag.TRADE_NOCPI, IxTag.TRADE_CPI):
        names = [role.name for role in ACCOUNTS_BY_TAG[tag]]
        assert names[0] == "user" and names[2] == "slab", tag
        assert names[1] in ("lp", "lp_owner"), tag


def test_first_role_always_signs() -> None:
    for tag, template in ACCOUNTS_BY_TAG.items():
        assert template[0].signer, tag


def test_length_mismatch_fails_before_key_conversion() -> None:
    # Invalid keys would raise CoercionError; the length check must come first.
    with pytest.raises(AccountListLengthError) as ei:
        build_account_metas(ACCOUNTS_KEEPER_CRANK, ["0OIl-not-a-key"] * 3)
    assert ei.value.expected == 4
    assert ei.value.actual == 3

    with pytest.raises(AccountListLengthError):
        build_account_metas(ACCOUNTS_KEEPER_CRANK, _keys(5))


def test_output_follows_template_order() -> None:
    keys = _keys(len(ACCOUNTS_WITHDRAW_COLLATERAL))
    metas = build_account_metas(ACCOUNTS_WITHDRAW_COLLATERAL, keys)
    assert [m.pubkey for m in metas] == keys
    assert [(m.is_signer, m.is_writable) for m in metas] == [
        (r.signer, r.writable) for r in ACCOUNTS_WITHDRAW_COLLATERAL
    ]


def test_duplicate_addresses_are_kept() -> None:
    same = Pubkey.new_unique()
    slab, oracle = Pubkey.new_unique(), Pubkey.new_unique()
    metas = build_account_metas(ACCOUNTS_TRADE_NOCPI, [same, same, slab, SYSVAR_CLOCK_ID, oracle])
    assert len(metas) == 5
    assert metas[0].pubkey == metas[1].pubkey == same
    assert metas[0].is_signer and metas[1].is_signer


def test_trade_cpi_lp_owner_does_not_sign() -> None:
    roles = {r.name: r for r in ACCOUNTS_TRADE_CPI}
    assert not roles["lp_owner"].signer
    assert roles["lp_owner"].writable
    assert roles["matcher_context"].writable
    assert not roles["lp_pda"].signer and not roles["lp_pda"].writable
    assert [r.name for r in ACCOUNTS_TRADE_CPI][-3:] == ["matcher_program", "matcher_context", "lp_pda"]


def test_admin_instructions_use_read_only_admin() -> None:
    assert [(r.name, r.signer, r.writable) for r in ACCOUNTS_PUSH_ORACLE_PRICE] == [
        ("admin", True, False),
        ("slab", False, True),
    ]
    assert ACCOUNTS_CLOSE_SLAB[0].writable


def test_init_market_role_order() -> None:
    assert [r.name for r in ACCOUNTS_INIT_MARKET] == [
        "admin",
        "slab",
        "mint",
        "vault",
        "token_program",
        "clock",
        "rent",
        "dummy_ata",
        "system_program",
    ]


def test_keys_accept_strings_and_reject_garbage() -> None:
    keys = [str(k) for k in _keys(4)]
    metas = build_account_metas(ACCOUNTS_KEEPER_CRANK, keys)
    assert [str(m.pubkey) for m in metas] == keys
    with pytest.raises(CoercionError):
        build_account_metas(ACCOUNTS_KEEPER_CRANK, ["0OIl-not-a-key"] * 4)


def test_by_name() -> None:
    names = [r.name for r in ACCOUNTS_DEPOSIT_COLLATERAL]
    keys = dict(zip(names, _keys(len(names))))
    metas = build_account_metas_by_name(ACCOUNTS_DEPOSIT_COLLATERAL, dict(reversed(list(keys.items()))))
    assert [m.pubkey for m in metas] == [keys[n] for n in names]

    del keys["clock"]
    with pytest.raises(AccountListLengthError, match=r"missing=\['clock'\]"):
        build_account_metas_by_name(ACCOUNTS_DEPOSIT_COLLATERAL, keys)

    keys["clock"] = SYSVAR_CLOCK_ID
    keys["extra"] = Pubkey.new_unique()
    with pytest.raises(AccountListLengthError, match=r"unexpected=\['extra'\]"):
        build_account_metas_by_name(ACCOUNTS_DEPOSIT_COLLATERAL, keys)


def test_build_ix() -> None:
    program = Pubkey.new_unique()
    user, slab, ata, vault = _keys(4)
    metas = build_account_metas(
        ACCOUNTS_DEPOSIT_COLLATERAL, [user, slab, ata, vault, TOKEN_PROGRAM_ID, SYSVAR_CLOCK_ID]
    )
    data = DepositCollateralArgs(user_idx=7, amount=1_000_000_000).encode()
    ix = build_ix(program, metas, data)
    assert ix.program_id == program
    assert bytes(ix.data) == data
    assert list(ix.accounts) == metas
    assert ix.accounts[0] == AccountMeta(user, True, True)
