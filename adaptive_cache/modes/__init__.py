"""
Modes Module

- **capabilities.py**: capability sets per operational mode
- **mode_controller.py**: ModeController state machine, probing, recovery
"""

from adaptive_cache.modes.capabilities import MODE_CAPABILITIES, suggest_mode
from adaptive_cache.modes.mode_controller import ConnectionStatus, ModeController, ModeStats

__all__ = [
    "MODE_CAPABILITIES",
    "ConnectionStatus",
    "ModeController",
    "ModeStats",
    "suggest_mode",
]
