"""`solana`: program-derived address helpers."""

from .pda import (
    LP_SEED,
    VAULT_SEED,
    derive_lp_pda,
    derive_lp_pdas,
    derive_vault_authority,
    find_program_address,
    lp_seeds,
)

__all__ = [
    "LP_SEED",
    "VAULT_SEED",
    "derive_lp_pda",
    "derive_lp_pdas",
    "derive_vault_authority",
    "find_program_address",
    "lp_seeds",
]
