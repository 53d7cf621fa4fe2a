"""Shared fixtures for engine, room service and API tests."""

import os
import random

# Hermetic defaults, applied before any app module reads settings
os.environ["STORE_BACKEND"] = "memory"
os.environ.pop("UPSTASH_REDIS_REST_URL", None)
os.environ.pop("UPSTASH_REDIS_REST_TOKEN", None)

import pytest  # noqa: E402

from app.config import get_settings  # noqa: E402
from app.schemas.game_engine import (  # noqa: E402
    BlackjackPhase,
    BlackjackTable,
    Card,
    HangmanPhase,
    HangmanState,
)
from app.services.game.engine.cards import make_card  # noqa: E402
from app.services.room.service import RoomService  # noqa: E402
from app.services.store import InMemoryStore  # noqa: E402

# Fixed identifiers for deterministic testing
PLAYER_1_ID = "player-1"
PLAYER_2_ID = "player-2"
PLAYER_3_ID = "player-3"

SESSION_1 = "00000000-0000-4000-8000-000000000001"
SESSION_2 = "00000000-0000-4000-8000-000000000002"
SESSION_3 = "00000000-0000-4000-8000-000000000003"


def cards(*ranks: str) -> list[Card]:
    """Helper to build a hand from ranks."""
    return [make_card(rank) for rank in ranks]


def shoe_drawing(*ranks: str) -> list[Card]:
    """A shoe whose next draws yield the given ranks, in order."""
    return list(reversed(cards(*ranks)))


def create_table(
    phase: BlackjackPhase = BlackjackPhase.PLAYING,
    player: tuple[str, ...] = (),
    dealer: tuple[str, ...] = (),
    draws: tuple[str, ...] = (),
    player_id: str = PLAYER_1_ID,
) -> BlackjackTable:
    """Helper to create a table mid-hand with a known shoe."""
    return BlackjackTable(
        player_id=player_id,
        phase=phase,
        shoe=shoe_drawing(*draws),
        player_hand=cards(*player),
        dealer_hand=cards(*dealer),
    )


def create_hangman(
    word: str,
    guessed: tuple[str, ...] = (),
    wrong: int = 0,
    turn_order: tuple[str, ...] = (PLAYER_1_ID, PLAYER_2_ID),
    current_guesser: int = 0,
    phase: HangmanPhase = HangmanPhase.PLAYING,
) -> HangmanState:
    """Helper to create a Hangman round in progress."""
    return HangmanState(
        phase=phase,
        word=word,
        word_source="custom",
        guessed_letters=list(guessed),
        wrong_guesses=wrong,
        turn_order=list(turn_order),
        current_guesser=current_guesser,
    )


class StackedDeck(random.Random):
    """Random source whose shuffle puts the given ranks on top of the shoe.

    The first rank is drawn first: with deal order player, player, dealer,
    dealer, StackedDeck("A", "K", "5", "6") deals the player A-K.
    """

    def __init__(self, *ranks: str):
        super().__init__(0)
        self._ranks = ranks

    def shuffle(self, x) -> None:
        top = []
        for rank in self._ranks:
            index = next(i for i, card in enumerate(x) if card.rank == rank)
            top.append(x.pop(index))
        x.extend(reversed(top))


class FakeRedis:
    """In-process double for the upstash_redis asyncio client.

    Supports the commands the presence tracker uses. expire_now() simulates
    a key's TTL running out.
    """

    def __init__(self):
        self.strings: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.sets: dict[str, set[str]] = {}

    async def set(self, key: str, value: str, ex: int | None = None):
        self.strings[key] = value
        self.ttls[key] = ex
        return "OK"

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if key in self.strings or key in self.sets)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.strings.pop(key, None) is not None:
                removed += 1
            if self.sets.pop(key, None) is not None:
                removed += 1
        return removed

    async def sadd(self, key: str, *members: str) -> int:
        bucket = self.sets.setdefault(key, set())
        added = len(set(members) - bucket)
        bucket.update(members)
        return added

    async def srem(self, key: str, *members: str) -> int:
        bucket = self.sets.get(key, set())
        removed = len(bucket & set(members))
        bucket.difference_update(members)
        if not bucket:
            self.sets.pop(key, None)
        return removed

    async def smembers(self, key: str) -> list[str]:
        return sorted(self.sets.get(key, set()))

    def expire_now(self, key: str) -> None:
        self.strings.pop(key, None)
        self.ttls.pop(key, None)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def room_service(store: InMemoryStore, settings) -> RoomService:
    return RoomService(store=store, settings=settings)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
