from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter


class GameType(str, Enum):
    BLACKJACK = "blackjack"
    HANGMAN = "hangman"
    POKER = "poker"
    UNO = "uno"


# Capacity defaults per game, from the lobby's advertised player ranges
DEFAULT_MAX_PLAYERS: dict[GameType, int] = {
    GameType.BLACKJACK: 8,
    GameType.POKER: 8,
    GameType.UNO: 10,
    GameType.HANGMAN: 6,
}


# Cards
class Suit(str, Enum):
    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"
    SPADES = "spades"


class Card(BaseModel):
    suit: Suit
    rank: str
    value: int  # Aces count 11 here; hand evaluation demotes them


# Blackjack
class BlackjackPhase(str, Enum):
    BETTING = "betting"
    PLAYING = "playing"
    DEALER = "dealer"
    FINISHED = "finished"


class BlackjackOutcome(str, Enum):
    WIN = "win"
    LOSE = "lose"
    PUSH = "push"


class BlackjackTable(BaseModel):
    """One participant's hand against the dealer, with its own shoe."""

    player_id: str
    phase: BlackjackPhase = BlackjackPhase.BETTING
    shoe: list[Card] = []
    player_hand: list[Card] = []
    dealer_hand: list[Card] = []
    outcome: BlackjackOutcome | None = None
    reason: str | None = None  # natural, bust, dealer_bust, higher_total, lower_total, tie


# Hangman
class HangmanPhase(str, Enum):
    SETUP = "setup"
    PLAYING = "playing"
    WON = "won"
    LOST = "lost"


# Game-state documents, one variant per game type
class BaseGameDocument(BaseModel):
    version: int = 0  # Mirrors the room's state_version at the time of writing
    event_seq: int = 0  # Next sequence number for events (monotonically increasing)


class BlackjackState(BaseGameDocument):
    game_type: Literal["blackjack"] = "blackjack"
    tables: list[BlackjackTable] = []


class HangmanState(BaseGameDocument):
    game_type: Literal["hangman"] = "hangman"
    phase: HangmanPhase = HangmanPhase.SETUP
    word: str = ""
    word_source: Literal["random", "custom"] | None = None
    guessed_letters: list[str] = []
    wrong_guesses: int = 0
    turn_order: list[str] = Field(
        default_factory=list, description="Player IDs in guessing order (joined_at ascending)"
    )
    current_guesser: int = 0


class PlaceholderState(BaseGameDocument):
    """Poker and UNO have no rule engine; the document only records that play began."""

    game_type: Literal["poker", "uno"]
    started: bool = True


GameDocument = Annotated[
    BlackjackState | HangmanState | PlaceholderState,
    Field(discriminator="game_type"),
]

_game_document_adapter: TypeAdapter[GameDocument] = TypeAdapter(GameDocument)


def parse_game_document(data: dict[str, Any]) -> GameDocument:
    """Validate a raw game_state payload into its typed variant.

    Raises:
        pydantic.ValidationError: If the payload matches no variant.
    """
    return _game_document_adapter.validate_python(data)
