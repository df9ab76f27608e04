"""
Strategy module for pattern detection.

This module implements:
- Candle streak detection
- Cumulative drift detection with baseline rebasing
- Pump-dump reversal analysis
"""

from .streak import detect_streak
from .drift import CumulativeDriftDetector
from .pump_dump import PumpDumpAnalyzer

__all__ = [
    "detect_streak",
    "CumulativeDriftDetector",
    "PumpDumpAnalyzer",
]
