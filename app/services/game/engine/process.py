"""Main entry point for game action processing.

This module provides the primary interface for processing game actions:
- get_engine(): resolves the state machine for a game type
- initialize_game(): builds the first document when a room starts playing
- process_action(): validates and processes any game action
- Returns ProcessResult with new state and events
"""

import logging
import random

from pydantic import BaseModel

from app.schemas.game_engine import GameDocument, GameType

from .base import GameEngine
from .blackjack import BlackjackEngine
from .events import GameInitialized
from .hangman import HangmanEngine
from .placeholder import PlaceholderEngine
from .validation import ProcessResult

logger = logging.getLogger(__name__)

ENGINES: dict[GameType, GameEngine] = {
    GameType.BLACKJACK: BlackjackEngine(),
    GameType.HANGMAN: HangmanEngine(),
    GameType.POKER: PlaceholderEngine(GameType.POKER),
    GameType.UNO: PlaceholderEngine(GameType.UNO),
}


def get_engine(game_type: GameType | str) -> GameEngine:
    """Resolve the engine for a game type.

    Raises:
        ValueError: If the game type is unknown.
    """
    return ENGINES[GameType(game_type)]


def initialize_game(
    game_type: GameType | str,
    player_ids: list[str],
    rng: random.Random | None = None,
) -> ProcessResult:
    """Create the initial document for a room entering play.

    Args:
        game_type: The room's game.
        player_ids: Roster player IDs in joined_at order.
        rng: Optional random source.

    Returns:
        ProcessResult with the initial document and a GameInitialized event.
    """
    engine = get_engine(game_type)
    document = engine.init(player_ids, rng)
    logger.info(
        "Game initialized: type=%s, players=%d", engine.game_type.value, len(player_ids)
    )
    result = ProcessResult.ok(
        document,
        [GameInitialized(game_type=engine.game_type.value, player_ids=list(player_ids))],
    )
    return _assign_event_sequences(result)


def process_action(
    document: GameDocument,
    action: BaseModel,
    actor_id: str,
    *,
    is_host: bool = False,
    rng: random.Random | None = None,
) -> ProcessResult:
    """Process a game action and return the result.

    This is the main entry point for all game actions. It:
    1. Resolves the engine from the document's game_type
    2. Lets the engine validate and apply the action
    3. Assigns sequence numbers to events
    4. Returns ProcessResult with new document and events

    Args:
        document: Current game-state document.
        action: The action to process.
        actor_id: The player attempting the action.
        is_host: Whether the actor currently holds host status.
        rng: Optional random source (shuffles, random words).

    Returns:
        ProcessResult containing:
        - success: Whether the action was processed successfully
        - state: The new document (if successful)
        - events: List of events that occurred (with seq numbers)
        - error_code/error_message: Error details (if failed)
    """
    action_type = type(action).__name__
    engine = get_engine(document.game_type)
    logger.info(
        "Processing action: game=%s, type=%s, player=%s",
        engine.game_type.value,
        action_type,
        actor_id,
    )
    logger.debug("Action details: %s", action)

    result = engine.apply_action(document, action, actor_id, is_host=is_host, rng=rng)

    if result.success and result.state is not None:
        result = _assign_event_sequences(result)
        logger.info(
            "Action processed successfully: type=%s, player=%s, events_generated=%d",
            action_type,
            actor_id,
            len(result.events),
        )
        logger.debug("Generated events: %s", [type(e).__name__ for e in result.events])
    else:
        logger.warning(
            "Action processing failed: type=%s, player=%s, error=%s",
            action_type,
            actor_id,
            result.error_code,
        )

    return result


def _assign_event_sequences(result: ProcessResult) -> ProcessResult:
    """Assign monotonically increasing sequence numbers to events.

    Updates each event's seq field and increments the document's event_seq counter.
    """
    if result.state is None or not result.events:
        return result

    current_seq = result.state.event_seq
    for event in result.events:
        event.seq = current_seq
        current_seq += 1

    new_state = result.state.model_copy(update={"event_seq": current_seq})

    return ProcessResult.ok(new_state, result.events)
