"""
Core module for scanner state and scheduling.

This module provides the foundational components:
- StateStore: Per-symbol baselines and cooldown timestamps
- AlertGate: Shared per-symbol alert cooldown
- RateLimitedRunner: Concurrency and start-rate capped task batches
- Settings: Validated configuration
"""

from .state_store import StateStore
from .alert_gate import AlertGate
from .rate_limiter import RateLimitedRunner
from .config import Settings, ConfigError, load_settings

__all__ = [
    "StateStore",
    "AlertGate",
    "RateLimitedRunner",
    "Settings",
    "ConfigError",
    "load_settings",
]
