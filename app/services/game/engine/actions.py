"""Game action types - explicit user inputs separated from game state."""

from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator

# --- Blackjack ---


class DealAction(BaseModel):
    """Deal a fresh hand from a newly shuffled shoe."""

    action_type: Literal["deal"] = "deal"


class HitAction(BaseModel):
    """Draw one card into the player's hand."""

    action_type: Literal["hit"] = "hit"


class StandAction(BaseModel):
    """End the player's turn and let the dealer play."""

    action_type: Literal["stand"] = "stand"


class NewHandAction(BaseModel):
    """Clear a finished table back to betting."""

    action_type: Literal["new_hand"] = "new_hand"


# --- Hangman ---


class SelectWordAction(BaseModel):
    """Host picks the word for a new round."""

    action_type: Literal["select_word"] = "select_word"
    source: Literal["random", "custom"] = "random"
    word: str | None = Field(None, max_length=15, description="Required when source is 'custom'")


class GuessAction(BaseModel):
    """Guess a single letter."""

    action_type: Literal["guess"] = "guess"
    letter: str = Field(..., min_length=1, max_length=1, pattern=r"^[A-Za-z]$")

    @field_validator("letter")
    @classmethod
    def upper_letter(cls, v: str) -> str:
        return v.upper()


class PlayAgainAction(BaseModel):
    """Return a finished round to setup."""

    action_type: Literal["play_again"] = "play_again"


BlackjackAction = DealAction | HitAction | StandAction | NewHandAction
HangmanAction = SelectWordAction | GuessAction | PlayAgainAction

# Union type for all game actions
GameAction = Annotated[
    DealAction
    | HitAction
    | StandAction
    | NewHandAction
    | SelectWordAction
    | GuessAction
    | PlayAgainAction,
    Field(discriminator="action_type"),
]

_ACTION_TYPES: dict[str, type[BaseModel]] = {
    "deal": DealAction,
    "hit": HitAction,
    "stand": StandAction,
    "new_hand": NewHandAction,
    "select_word": SelectWordAction,
    "guess": GuessAction,
    "play_again": PlayAgainAction,
}


def build_action_from_payload(payload: dict) -> GameAction:
    """Build a typed action from a raw payload dict.

    Args:
        payload: Dict with 'action_type' key and action-specific fields.

    Returns:
        The appropriate GameAction subtype.

    Raises:
        ValueError: If action_type is missing or unknown.
        pydantic.ValidationError: If the action-specific fields are invalid.
    """
    action_type = payload.get("action_type")
    action_cls = _ACTION_TYPES.get(action_type) if isinstance(action_type, str) else None
    if action_cls is None:
        raise ValueError(f"Unknown action type: {action_type}")
    return action_cls.model_validate(payload)
