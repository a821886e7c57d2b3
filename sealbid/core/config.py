"""
Engine configuration parameters for sealbid.

Defines storage locations, logging, and the bid-value policy.
Values can be overridden from a dotenv file and SEALBID_* environment
variables.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

ENV_PREFIX = "SEALBID_"


@dataclass
class EngineConfig:
    """Engine-wide configuration parameters"""

    # Storage
    data_dir: Path = Path("data")
    db_name: str = "sealbid.db"

    # Logging
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    log_to_file: bool = False

    # Bid value policy (quote-asset minor units, USDC has 6 decimals)
    # Disabled by default; the 0.01-1.0 USDC window is a demo calibration.
    enforce_bid_bounds: bool = False
    min_bid_value: int = 10_000  # 0.01 USDC
    max_bid_value: int = 1_000_000  # 1.0 USDC
    base_decimals: int = 18  # decimals of the base asset amount

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    def ensure_dirs(self) -> None:
        """Create data and log directories"""
        self.data_dir.mkdir(exist_ok=True, parents=True)
        if self.log_to_file:
            self.log_dir.mkdir(exist_ok=True, parents=True)

    def bid_value(self, amount: int, price: int) -> int:
        """Quote-asset value of a bid: amount (base units) times unit price."""
        return amount * price // (10 ** self.base_decimals)


# Global config instance (can be overridden)
config = EngineConfig()


def _coerce(raw: str, default):
    """Convert a raw string setting to the type of the field default."""
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, Path):
        return Path(raw).expanduser()
    return raw


def load_config(config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> EngineConfig:
    """
    Load configuration from a dotenv file and the environment.

    Precedence: environment > dotenv file > defaults. Keys are the field
    names upper-cased with the SEALBID_ prefix, e.g. SEALBID_DATA_DIR.

    Args:
        config_path: Optional path to a dotenv file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        EngineConfig instance

    Raises:
        FileNotFoundError: If config_path is given but does not exist
        ValueError: If a numeric setting cannot be parsed
    """
    settings: Dict[str, str] = {}
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        settings.update({k: v for k, v in dotenv_values(path).items() if v is not None})

    env = os.environ if environ is None else environ
    settings.update({k: v for k, v in env.items() if k.startswith(ENV_PREFIX)})

    defaults = EngineConfig()
    overrides = {}
    for f in fields(EngineConfig):
        key = ENV_PREFIX + f.name.upper()
        if key in settings:
            overrides[f.name] = _coerce(settings[key], getattr(defaults, f.name))

    return EngineConfig(**overrides)
