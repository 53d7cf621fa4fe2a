"""Hangman state machine.

Phases: setup -> playing -> {won, lost}; play_again returns to setup.

Guessing rotates round-robin over an explicit turn_order stored in the
document, so every client derives the same guesser from the same document.
"""

import logging
import random
import re
from typing import Any

from pydantic import BaseModel

from app.schemas.game_engine import GameDocument, GameType, HangmanPhase, HangmanState

from .actions import GuessAction, PlayAgainAction, SelectWordAction
from .base import GameEngine
from .events import AnyGameEvent, LetterGuessed, RoundEnded, RoundReset, WordSelected
from .validation import ProcessResult, ValidationResult

logger = logging.getLogger(__name__)

MAX_WRONG_GUESSES = 6
MIN_WORD_LENGTH = 3

WORDS = [
    "JAVASCRIPT", "PROGRAMMING", "DEVELOPER", "COMPUTER", "ALGORITHM",
    "DATABASE", "INTERFACE", "FUNCTION", "VARIABLE", "KEYBOARD",
    "MONITOR", "NETWORK", "SOFTWARE", "HARDWARE", "INTERNET",
    "BROWSER", "WEBSITE", "APPLICATION", "FRAMEWORK", "LIBRARY",
]  # fmt: skip

_NON_LETTERS = re.compile(r"[^A-Z]")


def clean_custom_word(raw: str) -> str:
    """Trim, upper-case, and drop every character outside A-Z."""
    return _NON_LETTERS.sub("", raw.strip().upper())


def is_word_revealed(word: str, guessed: list[str]) -> bool:
    return set(word) <= set(guessed)


def current_guesser_id(state: HangmanState) -> str | None:
    if not state.turn_order:
        return None
    return state.turn_order[state.current_guesser % len(state.turn_order)]


def masked_word(state: HangmanState) -> list[str | None]:
    """Letters of the word, None where not yet guessed."""
    guessed = set(state.guessed_letters)
    return [letter if letter in guessed else None for letter in state.word]


class HangmanEngine(GameEngine):
    game_type = GameType.HANGMAN
    action_types = (SelectWordAction, GuessAction, PlayAgainAction)

    def init(self, player_ids: list[str], rng: random.Random | None = None) -> HangmanState:
        return HangmanState(turn_order=list(player_ids))

    def validate(
        self, state: HangmanState, action: BaseModel, actor_id: str, is_host: bool
    ) -> ValidationResult:
        if isinstance(action, SelectWordAction):
            if state.phase != HangmanPhase.SETUP:
                return ValidationResult.error("INVALID_PHASE", "A word has already been chosen")
            if not is_host:
                return ValidationResult.error("NOT_HOST", "Only the host can choose the word")
            if action.source == "custom":
                cleaned = clean_custom_word(action.word or "")
                if len(cleaned) < MIN_WORD_LENGTH:
                    return ValidationResult.error(
                        "VALIDATION_ERROR",
                        f"Custom word needs at least {MIN_WORD_LENGTH} letters",
                    )
            return ValidationResult.ok()

        if isinstance(action, GuessAction):
            if state.phase != HangmanPhase.PLAYING:
                return ValidationResult.error("INVALID_PHASE", "No round in progress")
            if action.letter in state.guessed_letters:
                return ValidationResult.error(
                    "ALREADY_GUESSED", f"'{action.letter}' has already been guessed"
                )
            guesser = current_guesser_id(state)
            if guesser is not None and guesser != actor_id:
                logger.warning(
                    "Validation failed: NOT_YOUR_TURN, current=%s, attempted=%s",
                    guesser[:8],
                    actor_id[:8],
                )
                return ValidationResult.error("NOT_YOUR_TURN", "It's not your turn to guess")
            return ValidationResult.ok()

        # PlayAgainAction
        if state.phase not in (HangmanPhase.WON, HangmanPhase.LOST):
            return ValidationResult.error("INVALID_PHASE", "The round is not over yet")
        return ValidationResult.ok()

    def apply_action(
        self,
        document: GameDocument,
        action: BaseModel,
        actor_id: str,
        *,
        is_host: bool = False,
        rng: random.Random | None = None,
    ) -> ProcessResult:
        if not isinstance(document, HangmanState) or not self.accepts(action):
            return ProcessResult.failure("INVALID_ACTION", "Action does not apply to Hangman")

        validation = self.validate(document, action, actor_id, is_host)
        if not validation.is_valid:
            return validation.to_process_result()

        if isinstance(action, SelectWordAction):
            return self._select_word(document, action, rng)
        if isinstance(action, GuessAction):
            return self._guess(document, action.letter, actor_id)
        return self._play_again(document)

    def _select_word(
        self, state: HangmanState, action: SelectWordAction, rng: random.Random | None
    ) -> ProcessResult:
        if action.source == "custom":
            word = clean_custom_word(action.word or "")
        else:
            word = (rng or random.SystemRandom()).choice(WORDS)

        new_state = state.model_copy(
            update={
                "phase": HangmanPhase.PLAYING,
                "word": word,
                "word_source": action.source,
                "guessed_letters": [],
                "wrong_guesses": 0,
                "current_guesser": 0,
            }
        )
        logger.info("Hangman word selected: source=%s, length=%d", action.source, len(word))
        return ProcessResult.ok(
            new_state,
            [
                WordSelected(
                    source=action.source,
                    word_length=len(word),
                    guesser_id=current_guesser_id(new_state),
                )
            ],
        )

    def _guess(self, state: HangmanState, letter: str, actor_id: str) -> ProcessResult:
        # Compute the complete next document before anything is written
        guessed = [*state.guessed_letters, letter]
        correct = letter in state.word
        wrong_guesses = state.wrong_guesses
        current_guesser = state.current_guesser
        phase = HangmanPhase.PLAYING

        if correct:
            if is_word_revealed(state.word, guessed):
                phase = HangmanPhase.WON
        else:
            wrong_guesses += 1
            if state.turn_order:
                current_guesser = (current_guesser + 1) % len(state.turn_order)
            if wrong_guesses >= MAX_WRONG_GUESSES:
                phase = HangmanPhase.LOST

        new_state = state.model_copy(
            update={
                "guessed_letters": guessed,
                "wrong_guesses": wrong_guesses,
                "current_guesser": current_guesser,
                "phase": phase,
            }
        )

        events: list[AnyGameEvent] = [
            LetterGuessed(
                player_id=actor_id,
                letter=letter,
                correct=correct,
                wrong_guesses=wrong_guesses,
                next_guesser_id=current_guesser_id(new_state),
            )
        ]
        if phase != HangmanPhase.PLAYING:
            logger.info("Hangman round ended: phase=%s, wrong=%d", phase.value, wrong_guesses)
            events.append(RoundEnded(phase=phase, word=state.word, wrong_guesses=wrong_guesses))
        return ProcessResult.ok(new_state, events)

    def _play_again(self, state: HangmanState) -> ProcessResult:
        new_state = state.model_copy(
            update={
                "phase": HangmanPhase.SETUP,
                "word": "",
                "word_source": None,
                "guessed_letters": [],
                "wrong_guesses": 0,
                "current_guesser": 0,
            }
        )
        return ProcessResult.ok(new_state, [RoundReset()])

    def is_terminal(self, document: GameDocument) -> bool:
        return isinstance(document, HangmanState) and document.phase in (
            HangmanPhase.WON,
            HangmanPhase.LOST,
        )

    def add_player(self, document: GameDocument, player_id: str) -> GameDocument:
        if not isinstance(document, HangmanState) or player_id in document.turn_order:
            return document
        return document.model_copy(update={"turn_order": [*document.turn_order, player_id]})

    def remove_player(self, document: GameDocument, player_id: str) -> GameDocument:
        """Drop a player from the rotation, keeping the current guesser stable.

        If the departing player held the turn, it passes to whoever followed them.
        """
        if not isinstance(document, HangmanState) or player_id not in document.turn_order:
            return document

        removed_index = document.turn_order.index(player_id)
        turn_order = [pid for pid in document.turn_order if pid != player_id]
        current = document.current_guesser
        if removed_index < current:
            current -= 1
        current = current % len(turn_order) if turn_order else 0

        return document.model_copy(update={"turn_order": turn_order, "current_guesser": current})

    def public_view(self, document: GameDocument) -> dict[str, Any]:
        """Mask unguessed letters until the round is over."""
        view = document.model_dump(mode="json")
        if not isinstance(document, HangmanState):
            return view
        view["revealed"] = masked_word(document)
        view["word_length"] = len(document.word)
        view["current_guesser_id"] = current_guesser_id(document)
        if not self.is_terminal(document):
            view["word"] = None
        return view
