"""
Configuration loading and validation.

Settings come from two places:
- config.yaml: scanner tuning (thresholds, caps, intervals)
- environment / .env: Telegram credentials and the legacy POLL_INTERVAL override

The YAML is parsed with PyYAML and validated into pydantic models. Any problem
is raised as ConfigError, which is fatal at startup only.
"""

import os
from pathlib import Path
from typing import Optional, Union

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, model_validator


# Kline interval names accepted by the MEXC contract API, in milliseconds
INTERVAL_MS = {
    "Min1": 60_000,
    "Min5": 5 * 60_000,
    "Min15": 15 * 60_000,
    "Min30": 30 * 60_000,
    "Min60": 60 * 60_000,
    "Hour4": 4 * 60 * 60_000,
    "Hour8": 8 * 60 * 60_000,
    "Day1": 24 * 60 * 60_000,
}

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config.yaml"


class ConfigError(Exception):
    """
    Raised when configuration is missing or invalid.

    This exception indicates a problem with config.yaml or the environment
    that must be resolved before the scanner can start.
    """
    pass


class ExchangeConfig(BaseModel):
    base_url: str = "https://contract.mexc.com/api/v1/contract"
    quote_suffix: str = "_USDT"
    http_timeout_seconds: float = Field(default=8.0, gt=0)
    fetch_retries: int = Field(default=3, ge=1)


class SchedulerConfig(BaseModel):
    poll_interval_seconds: float = Field(default=30.0, gt=0)
    alert_cooldown_seconds: float = Field(default=6.0, ge=0)
    max_concurrent_requests: int = Field(default=6, ge=1)
    max_requests_per_second: float = Field(default=5.0, gt=0)
    universe_refresh_seconds: float = Field(default=300.0, ge=0)


class StreakConfig(BaseModel):
    enabled: bool = True
    interval: str = "Min1"
    lookback: int = Field(default=10, ge=1)
    threshold_percent: float = Field(default=2.0, gt=0)
    min_length: int = Field(default=3, ge=1)


class DriftConfig(BaseModel):
    enabled: bool = True
    threshold_percent: float = Field(default=3.0, gt=0)


class PumpDumpConfig(BaseModel):
    enabled: bool = True
    interval: str = "Min1"
    kline_limit: int = Field(default=60, ge=3)
    window: int = Field(default=30, ge=3)
    pump_threshold_percent: float = Field(default=20.0, gt=0)
    retracement_percent: float = Field(default=-5.0, lt=0)
    volume_spike_multiple: float = Field(default=3.0, gt=0)
    volume_exclude_last: int = Field(default=3, ge=1)
    short_ma: int = Field(default=5, ge=1)
    long_ma: int = Field(default=30, ge=2)
    funding_rate_ceiling: float = 0.001
    min_quote_volume_24h: float = Field(default=500_000.0, ge=0)

    @model_validator(mode="after")
    def validate_periods(self) -> "PumpDumpConfig":
        """Ensure moving averages and window fit inside the fetched klines."""
        if self.short_ma >= self.long_ma:
            raise ValueError(
                f"short_ma ({self.short_ma}) must be less than long_ma ({self.long_ma})"
            )
        if self.kline_limit < self.long_ma + 1:
            raise ValueError(
                f"kline_limit ({self.kline_limit}) must cover long_ma + 1 "
                f"({self.long_ma + 1}) candles to detect a cross"
            )
        if self.kline_limit < self.window + 1:
            raise ValueError(
                f"kline_limit ({self.kline_limit}) must leave at least one candle "
                f"before the {self.window} candle window as the pump baseline"
            )
        if self.volume_exclude_last >= self.window:
            raise ValueError(
                f"volume_exclude_last ({self.volume_exclude_last}) must be "
                f"smaller than window ({self.window})"
            )
        return self


class BinanceListingConfig(BaseModel):
    enabled: bool = True


class TelegramConfig(BaseModel):
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    api_url: str = "https://api.telegram.org"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[str] = "logs/mexc_watch.log"
    rotation: str = "10 MB"
    retention: str = "7 days"


class Settings(BaseModel):
    """
    Complete scanner configuration.

    Examples:
        >>> settings = Settings()
        >>> settings.scheduler.poll_interval_seconds
        30.0
        >>> settings.streak.threshold_percent
        2.0
    """

    dry_run: bool = False
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    streak: StreakConfig = Field(default_factory=StreakConfig)
    drift: DriftConfig = Field(default_factory=DriftConfig)
    pump_dump: PumpDumpConfig = Field(default_factory=PumpDumpConfig)
    binance_listing: BinanceListingConfig = Field(default_factory=BinanceListingConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def validate_intervals(self) -> "Settings":
        """Reject kline intervals the exchange does not serve."""
        for section in (self.streak, self.pump_dump):
            if section.interval not in INTERVAL_MS:
                raise ValueError(
                    f"Unknown kline interval '{section.interval}'. "
                    f"Expected one of: {', '.join(INTERVAL_MS)}"
                )
        return self


def _read_yaml(path: Path) -> dict:
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, "r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration file: {e}")

    if config is None:
        raise ConfigError("Configuration file is empty")
    if not isinstance(config, dict):
        raise ConfigError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )
    return config


def _apply_env(config: dict) -> dict:
    """Overlay environment variables onto the raw YAML mapping."""
    telegram = dict(config.get("telegram") or {})
    token = os.getenv("TELEGRAM_BOT_TOKEN")
    chat_id = os.getenv("TELEGRAM_CHAT_ID")
    if token:
        telegram["bot_token"] = token
    if chat_id:
        telegram["chat_id"] = chat_id
    config["telegram"] = telegram

    # POLL_INTERVAL is in milliseconds; unusable values keep the file's interval
    poll_interval = os.getenv("POLL_INTERVAL")
    if poll_interval:
        try:
            interval_ms = int(poll_interval)
        except ValueError:
            interval_ms = 0
        if interval_ms <= 0:
            logger.warning(
                f"Ignoring POLL_INTERVAL='{poll_interval}': expected a positive "
                f"number of milliseconds"
            )
            return config
        scheduler = dict(config.get("scheduler") or {})
        scheduler["poll_interval_seconds"] = interval_ms / 1000
        config["scheduler"] = scheduler

    return config


def load_settings(
    path: Optional[Union[str, Path]] = None,
    dry_run: Optional[bool] = None
) -> Settings:
    """
    Load and validate settings from YAML plus environment.

    Args:
        path: Path to config.yaml. Defaults to the project root config.yaml.
        dry_run: Overrides the file's dry_run flag when given

    Returns:
        Settings: Validated configuration

    Raises:
        ConfigError: If the file is missing, unparsable or invalid, or if
            Telegram credentials are missing outside dry-run mode
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = _apply_env(_read_yaml(config_path))
    if dry_run is not None:
        config["dry_run"] = dry_run

    try:
        settings = Settings.model_validate(config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}")

    if not settings.dry_run:
        missing = []
        if not settings.telegram.bot_token:
            missing.append("TELEGRAM_BOT_TOKEN")
        if not settings.telegram.chat_id:
            missing.append("TELEGRAM_CHAT_ID")
        if missing:
            raise ConfigError(
                f"Missing required Telegram credentials: {', '.join(missing)}. "
                f"Set them in your .env file or run with --dry-run."
            )

    return settings
