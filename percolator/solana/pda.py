"""Program-derived addresses used by the percolator program.

The bump search itself is ``solders``' ``Pubkey.find_program_address``; this
module owns the seed layouts and the limits checked before the search.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

from solders.pubkey import Pubkey

from ..abi.encode import U16, PubkeyLike, to_pubkey
from ..abi.errors import PdaCollisionError

logger = logging.getLogger(__name__)

MAX_SEED_LEN = 32
MAX_SEEDS = 16

VAULT_SEED = b"vault"
LP_SEED = b"lp"


def find_program_address(seeds: Sequence[bytes], program_id: PubkeyLike) -> Tuple[Pubkey, int]:
    """First off-curve address for ``seeds`` (bumps 255..0) and its bump."""
    pid = to_pubkey(program_id, name="program_id")
    # The bump is appended as one more seed, so the caller gets one fewer.
    if len(seeds) >= MAX_SEEDS:
        raise ValueError(f"at most {MAX_SEEDS - 1} seeds allowed before the bump, got {len(seeds)}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise ValueError(f"seed longer than {MAX_SEED_LEN} bytes: {len(seed)}")
    addr, bump = Pubkey.find_program_address([bytes(s) for s in seeds], pid)
    logger.debug("pda found: bump=%d seeds=%d program=%s", bump, len(seeds), pid)
    return addr, bump


def derive_vault_authority(program_id: PubkeyLike, slab: PubkeyLike) -> Tuple[Pubkey, int]:
    """Authority that signs for the market's collateral vault."""
    return find_program_address([VAULT_SEED, bytes(to_pubkey(slab, name="slab"))], program_id)


def lp_seeds(slab: PubkeyLike, lp_idx: int) -> List[bytes]:
    # Index serialized as u16 LE: out-of-range indices fail here rather than alias.
    return [LP_SEED, bytes(to_pubkey(slab, name="slab")), U16.encode(lp_idx, name="lp_idx")]


def derive_lp_pda(program_id: PubkeyLike, slab: PubkeyLike, lp_idx: int) -> Tuple[Pubkey, int]:
    """Per-slot LP address handed to matcher programs during ``TradeCpi``."""
    return find_program_address(lp_seeds(slab, lp_idx), program_id)


def derive_lp_pdas(program_id: PubkeyLike, slab: PubkeyLike, count: int) -> List[Tuple[Pubkey, int]]:
    """
    Derive LP addresses for slots ``0..count-1`` and check they are pairwise distinct.

    Raises:
        PdaCollisionError: two slot indices produced the same address.
    """
    if not 0 <= count <= U16.max_value + 1:
        raise ValueError(f"count must be in [0, {U16.max_value + 1}], got {count}")
    pid = to_pubkey(program_id, name="program_id")
    slab_key = to_pubkey(slab, name="slab")
    out: List[Tuple[Pubkey, int]] = []
    seen: Dict[Pubkey, int] = {}
    for idx in range(count):
        addr, bump = derive_lp_pda(pid, slab_key, idx)
        if addr in seen:
            raise PdaCollisionError(f"lp slots {seen[addr]} and {idx} both derive {addr}")
        seen[addr] = idx
        out.append((addr, bump))
    logger.debug("derived %d distinct lp pdas for slab %s", count, slab_key)
    return out
