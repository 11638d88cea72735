"""
Runtime Configuration

Reads the service configuration from environment variables once at import time.
Every value has a default so the API starts with no environment at all
(SQLite database and logs under ~/.workspace_hub).

Includes:
- Database location
- Logging destination and level
- Lifecycle scheduler interval and default retention
- Marketplace defaults (overridden by the stored marketplace config row)
"""
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path

from constants import ServerConfig, WorkspaceDefaults

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    return os.environ.get(name, str(default)).lower() in ('true', '1', 'yes')


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r}, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {name}={raw!r}, using {default}")
        return default


def _home_dir() -> Path:
    return Path(os.environ.get('WORKSPACE_HUB_HOME', str(Path.home() / '.workspace_hub')))


def _default_database_url() -> str:
    url = os.environ.get('DATABASE_URL')
    if url:
        # Heroku-style URLs use the scheme SQLAlchemy dropped
        if url.startswith('postgres://'):
            url = url.replace('postgres://', 'postgresql://', 1)
        return url
    return f"sqlite:///{_home_dir() / 'workspace_hub.db'}"


@dataclass
class MarketplaceDefaults:
    """Base marketplace configuration taken from the environment"""

    platform_fee_rate: float = 0.05
    auto_payout_enabled: bool = False
    payout_delay_days: int = 7
    escrow_enabled: bool = False
    minimum_payout_amount: float = 50.0
    supported_currencies: list[str] = field(default_factory=lambda: ['USD', 'EUR', 'GBP', 'CAD'])
    default_currency: str = 'USD'
    payment_timeout_minutes: int = 30

    @classmethod
    def from_env(cls) -> "MarketplaceDefaults":
        currencies = os.environ.get('SUPPORTED_CURRENCIES', 'USD,EUR,GBP,CAD')
        return cls(
            platform_fee_rate=_env_float('PLATFORM_FEE_RATE', 0.05),
            auto_payout_enabled=_env_bool('AUTO_PAYOUT_ENABLED'),
            payout_delay_days=_env_int('PAYOUT_DELAY_DAYS', 7),
            escrow_enabled=_env_bool('ESCROW_ENABLED'),
            minimum_payout_amount=_env_float('MINIMUM_PAYOUT_AMOUNT', 50.0),
            supported_currencies=[c.strip() for c in currencies.split(',') if c.strip()],
            default_currency=os.environ.get('DEFAULT_CURRENCY', 'USD'),
            payment_timeout_minutes=_env_int('PAYMENT_TIMEOUT_MINUTES', 30),
        )


@dataclass
class AppConfig:
    database_url: str
    log_dir: Path
    log_level: str
    lifecycle_check_interval: int
    default_retention_days: int
    server_host: str
    server_port: int
    marketplace: MarketplaceDefaults

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build the configuration from the current environment"""
        return cls(
            database_url=_default_database_url(),
            log_dir=Path(os.environ.get('LOG_DIR', str(_home_dir() / 'logs'))),
            log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
            lifecycle_check_interval=_env_int('LIFECYCLE_CHECK_INTERVAL', 3600),
            default_retention_days=_env_int('DEFAULT_RETENTION_DAYS', WorkspaceDefaults.RETENTION_PERIOD_DAYS),
            server_host=os.environ.get('SERVER_HOST', ServerConfig.HOST),
            server_port=_env_int('SERVER_PORT', ServerConfig.PORT),
            marketplace=MarketplaceDefaults.from_env(),
        )


# Global configuration instance
app_config = AppConfig.from_env()
