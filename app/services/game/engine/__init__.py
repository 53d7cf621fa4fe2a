"""Game engine module - pure functional game logic.

This module provides the core game engines with:
- A GameEngine contract every game type implements
- Action types for explicit user inputs
- Event types for WebSocket broadcasts
- ProcessResult pattern for error handling

Usage:
    from app.services.game.engine import (
        GuessAction,
        initialize_game,
        process_action,
    )

    started = initialize_game("hangman", player_ids)
    result = process_action(started.state, GuessAction(letter="E"), player_id)

    if result.success:
        new_document = result.state
        events = result.events  # Broadcast these via WebSocket
    else:
        # Handle error
        print(f"Error: {result.error_code} - {result.error_message}")
"""

# Actions - explicit user inputs
from .actions import (
    DealAction,
    GameAction,
    GuessAction,
    HitAction,
    NewHandAction,
    PlayAgainAction,
    SelectWordAction,
    StandAction,
    build_action_from_payload,
)

# Engines
from .base import GameEngine
from .blackjack import BlackjackEngine, determine_outcome
from .cards import create_deck, hand_value, is_soft, make_card, shuffled_deck

# Events - for WebSocket broadcasts
from .events import (
    AnyGameEvent,
    CardDrawn,
    CardsDealt,
    DealerPlayed,
    GameEvent,
    GameInitialized,
    HandFinished,
    LetterGuessed,
    RoundEnded,
    RoundReset,
    TableReset,
    WordSelected,
)
from .hangman import MAX_WRONG_GUESSES, WORDS, HangmanEngine, clean_custom_word
from .placeholder import PlaceholderEngine

# Main processing
from .process import ENGINES, get_engine, initialize_game, process_action

# Result types
from .validation import ProcessResult, ValidationResult

__all__ = [
    # Actions
    "GameAction",
    "DealAction",
    "HitAction",
    "StandAction",
    "NewHandAction",
    "SelectWordAction",
    "GuessAction",
    "PlayAgainAction",
    "build_action_from_payload",
    # Engines
    "ENGINES",
    "GameEngine",
    "BlackjackEngine",
    "HangmanEngine",
    "PlaceholderEngine",
    "get_engine",
    "determine_outcome",
    "clean_custom_word",
    "MAX_WRONG_GUESSES",
    "WORDS",
    # Cards
    "create_deck",
    "hand_value",
    "is_soft",
    "make_card",
    "shuffled_deck",
    # Events
    "GameEvent",
    "AnyGameEvent",
    "GameInitialized",
    "CardsDealt",
    "CardDrawn",
    "DealerPlayed",
    "HandFinished",
    "TableReset",
    "WordSelected",
    "LetterGuessed",
    "RoundEnded",
    "RoundReset",
    # Processing
    "initialize_game",
    "process_action",
    # Validation
    "ProcessResult",
    "ValidationResult",
]
