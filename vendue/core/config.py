"""
Configuration parameters for Vendue.

Defines the auction program identity, derivation namespaces, operational
limits and on-disk locations.

Values are layered: dataclass defaults, then an optional dotenv-style
file, then VENDUE_* environment variables.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values

ENV_PREFIX = "VENDUE_"


@dataclass
class LedgerConfig:
    """Program- and ledger-wide configuration parameters"""

    # Program identity
    program_name: str = "vendue.auction"

    # Derivation namespaces (seed = auction_id as 8 bytes little endian)
    auction_namespace: str = "auction"
    escrow_namespace: str = "escrow"
    custody_namespace: str = "auction_token_account"

    # Auction limits
    max_duration: int = 60 * 60 * 24 * 30  # Logical ticks (seconds) an auction may stay open

    # Paths
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")
    db_name: str = "ledger.db"

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False

    def ensure_directories(self) -> None:
        """Create data and log directories"""
        self.data_dir.mkdir(exist_ok=True, parents=True)
        if self.log_to_file:
            self.log_dir.mkdir(exist_ok=True, parents=True)


def _coerce(name: str, raw: str, default):
    """Convert a raw string into the type of the field default."""
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError:
            raise ValueError(f"{name} must be an integer, got {raw!r}")
    if isinstance(default, Path):
        return Path(raw).expanduser()
    return raw


def _apply(config: LedgerConfig, values: Mapping[str, Optional[str]]) -> None:
    for f in fields(config):
        raw = values.get(ENV_PREFIX + f.name.upper())
        if raw is None:
            continue
        setattr(config, f.name, _coerce(f.name, raw, getattr(config, f.name)))


def load_config(
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> LedgerConfig:
    """
    Load configuration from file and environment, or use defaults.

    Args:
        config_path: Optional path to a dotenv-style file (VENDUE_KEY=value)
        environ: Environment mapping, os.environ when None

    Returns:
        LedgerConfig instance
    """
    config = LedgerConfig()

    if config_path:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        file_values: Dict[str, Optional[str]] = dotenv_values(path)
        _apply(config, file_values)

    _apply(config, os.environ if environ is None else environ)

    if config.max_duration <= 0:
        raise ValueError(f"max_duration must be positive, got {config.max_duration}")

    return config
