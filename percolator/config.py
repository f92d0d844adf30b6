"""
Connection settings for tools built on the percolator ABI.

Sources, highest precedence first:
- explicit flags (``rpc``, ``program``, ``wallet``, ``commitment``, ``max_accounts``),
- a YAML config file (JSON files load too, being valid YAML),
- the ``SOLANA_RPC_URL`` environment variable (rpc url only),
- built-in defaults.

Validation collects every problem and raises a single ``ConfigError``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

import yaml
from solders.pubkey import Pubkey

from .abi.errors import ConfigError
from .state.layout import MAX_ACCOUNTS, SlabLayout

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAMES = ("percolator.yaml", "percolator-cli.json")
DEFAULT_RPC_URL = "https://api.devnet.solana.com"
DEFAULT_WALLET = "~/.config/solana/id.json"
DEFAULT_COMMITMENT = "confirmed"
COMMITMENTS = ("processed", "confirmed", "finalized")

# file key -> flag key
_FILE_KEYS = {
    "rpc_url": "rpc",
    "rpcUrl": "rpc",
    "program_id": "program",
    "programId": "program",
    "wallet": "wallet",
    "commitment": "commitment",
    "max_accounts": "max_accounts",
    "maxAccounts": "max_accounts",
}


@dataclass(frozen=True)
class PercolatorConfig:
    rpc_url: str
    program_id: Pubkey
    wallet: str
    commitment: str = DEFAULT_COMMITMENT
    max_accounts: int = MAX_ACCOUNTS

    def slab_layout(self) -> SlabLayout:
        return SlabLayout(max_accounts=self.max_accounts)


def expand_path(p: str, *, env: Optional[Mapping[str, str]] = None) -> str:
    """Resolve ``p`` to an absolute path, expanding a leading ``~/`` against ``HOME``."""
    env = os.environ if env is None else env
    if p.startswith("~/"):
        home = env.get("HOME") or env.get("USERPROFILE") or ""
        return str(Path(home, p[2:]).resolve())
    return str(Path(p).resolve())


def find_config(cwd: Optional[Path] = None) -> Optional[Path]:
    base = Path.cwd() if cwd is None else cwd
    for name in DEFAULT_CONFIG_NAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def _read_file(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError([f"failed to read config file {path}: {exc}"]) from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError([f"config file {path} must contain a mapping"])
    out: dict[str, Any] = {}
    unknown = []
    for key, value in raw.items():
        flag = _FILE_KEYS.get(str(key))
        if flag is None:
            unknown.append(str(key))
            continue
        out[flag] = value
    if unknown:
        raise ConfigError([f"{path}: unknown key {k!r}" for k in sorted(unknown)])
    return out


def _pick(key: str, *layers: Mapping[str, Any]) -> Any:
    for layer in layers:
        value = layer.get(key)
        if value is not None:
            return value
    return None


def load_config(
    flags: Optional[Mapping[str, Any]] = None,
    *,
    path: Optional[Path | str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> PercolatorConfig:
    flags = dict(flags or {})
    env = os.environ if env is None else env

    cfg_path: Optional[Path]
    if path is not None:
        cfg_path = Path(path)
    elif flags.get("config"):
        cfg_path = Path(flags["config"])
    else:
        cfg_path = find_config()

    file_values: dict[str, Any] = {}
    if cfg_path is not None:
        if not cfg_path.is_file():
            raise ConfigError([f"config file not found: {cfg_path}"])
        logger.debug("loading config from %s", cfg_path)
        file_values = _read_file(cfg_path)

    env_values = {"rpc": env.get("SOLANA_RPC_URL")}
    defaults = {
        "rpc": DEFAULT_RPC_URL,
        "wallet": DEFAULT_WALLET,
        "commitment": DEFAULT_COMMITMENT,
        "max_accounts": MAX_ACCOUNTS,
    }
    layers = (flags, file_values, env_values, defaults)

    issues: list[str] = []

    rpc_url = _pick("rpc", *layers)
    parsed = urlparse(str(rpc_url))
    if not isinstance(rpc_url, str) or parsed.scheme not in ("http", "https") or not parsed.netloc:
        issues.append(f"rpc_url: not an http(s) url: {rpc_url!r}")

    program_raw = _pick("program", *layers)
    program_id: Optional[Pubkey] = None
    if program_raw is None:
        issues.append("program_id: required")
    else:
        try:
            program_id = Pubkey.from_string(str(program_raw).strip())
        except ValueError:
            issues.append(f"program_id: not a base58 address: {program_raw!r}")

    wallet = _pick("wallet", *layers)
    if not isinstance(wallet, str) or not wallet.strip():
        issues.append("wallet: must be a non-empty path")

    commitment = _pick("commitment", *layers)
    if commitment not in COMMITMENTS:
        issues.append(f"commitment: must be one of {', '.join(COMMITMENTS)}, got {commitment!r}")

    max_accounts = _pick("max_accounts", *layers)
    if isinstance(max_accounts, bool) or not isinstance(max_accounts, int) or not 0 < max_accounts <= 65536:
        issues.append(f"max_accounts: must be an int in [1, 65536], got {max_accounts!r}")

    if issues or program_id is None:
        raise ConfigError(issues)

    return PercolatorConfig(
        rpc_url=rpc_url,
        program_id=program_id,
        wallet=expand_path(wallet.strip(), env=env),
        commitment=commitment,
        max_accounts=max_accounts,
    )
