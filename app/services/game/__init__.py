"""Game service module.

Provides the game engines (engine/) that own every game-state document.
"""

# Re-export from engine for convenience
from .engine import (
    GameAction,
    GameEngine,
    ProcessResult,
    build_action_from_payload,
    get_engine,
    initialize_game,
    process_action,
)

__all__ = [
    "GameAction",
    "GameEngine",
    "ProcessResult",
    "build_action_from_payload",
    "get_engine",
    "initialize_game",
    "process_action",
]
