"""
Auction configuration parameters for sealbid.

Defines timing windows, deposit rules, settlement mode and the typed-data
domain used for key binding signatures. Values come from SEALBID_*
environment variables or a .env file, optionally layered over a JSON file.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from sealbid.core.errors import InvalidArgument

ENV_PREFIX = "SEALBID_"

# 0.01 in 18-decimal base units
DEFAULT_MIN_DEPOSIT = 10_000_000_000_000_000
DEFAULT_ROUND_DURATION = 24 * 60 * 60
DEFAULT_EMERGENCY_DELAY = 24 * 60 * 60


class SettlementMode(str, Enum):
    """How payouts reach recipients."""

    PULL = "pull"  # Credit balances, recipients withdraw
    PUSH = "push"  # Transfer immediately, any rejection aborts settlement


class AuctionConfig(BaseSettings):
    """Engine-wide configuration parameters"""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Deposit rules
    min_deposit: int = Field(default=DEFAULT_MIN_DEPOSIT, gt=0)

    # Timing (seconds)
    round_duration: int = Field(default=DEFAULT_ROUND_DURATION, gt=0)
    emergency_delay: int = Field(default=DEFAULT_EMERGENCY_DELAY, ge=0)

    # Settlement
    settlement_mode: SettlementMode = SettlementMode.PULL

    # Key binding domain
    chain_id: int = Field(default=31337, ge=0)
    domain_name: str = "SealedBidAuction"
    domain_version: str = "1"

    # Logging
    log_level: str = "INFO"
    log_dir: Path = Path("logs")


def load_config(config_path: Optional[str] = None, **overrides: Any) -> AuctionConfig:
    """
    Load configuration from .env, environment and an optional JSON file.

    Precedence (lowest to highest): defaults, JSON file, .env, environment,
    keyword overrides.

    Args:
        config_path: Optional path to a JSON config file
        **overrides: Explicit field values

    Returns:
        AuctionConfig instance

    Raises:
        InvalidArgument: if the file is unreadable or a value is invalid
    """
    values: Dict[str, Any] = {}
    if config_path:
        try:
            values.update(json.loads(Path(config_path).read_text()))
        except (OSError, json.JSONDecodeError) as e:
            raise InvalidArgument(f"Cannot load config file {config_path}: {e}") from e

    try:
        # Settings sources rank init kwargs above the environment, so the
        # fields the environment sets are lifted over the file values here.
        from_env = AuctionConfig()
        values.update(from_env.model_dump(include=from_env.model_fields_set))
        values.update(overrides)
        return AuctionConfig(**values)
    except ValidationError as e:
        raise InvalidArgument(f"Invalid configuration: {e}", details={"errors": e.errors()}) from e
