"""
Scanner module: polling orchestration and process wiring.

This module provides:
- PollOrchestrator: Tick loop driving detectors, gate and notifier
- run_scanner: Builds the HTTP session and collaborators from Settings
"""

from .orchestrator import PollOrchestrator, PollState
from .app import run_scanner

__all__ = [
    "PollOrchestrator",
    "PollState",
    "run_scanner",
]
