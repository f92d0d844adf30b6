"""Binary protocol layer for the percolator perpetual-futures program.

Sub-packages:
- `percolator.abi`: primitive codec, instruction payloads, account-role templates
- `percolator.state`: slab decoding
- `percolator.solana`: program-derived addresses
"""

from .abi import IxTag, PercolatorError
from .config import PercolatorConfig, load_config
from .state import SlabLayout, parse_slab

__all__ = [
    "IxTag",
    "PercolatorError",
    "PercolatorConfig",
    "load_config",
    "SlabLayout",
    "parse_slab",
]
