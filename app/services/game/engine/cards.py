"""Deck construction and Blackjack hand evaluation."""

import random

from app.schemas.game_engine import Card, Suit

BLACKJACK = 21
ACE_HIGH = 11
ACE_DEMOTION = 10  # 11 -> 1

RANK_VALUES: list[tuple[str, int]] = [
    ("A", ACE_HIGH),
    ("2", 2),
    ("3", 3),
    ("4", 4),
    ("5", 5),
    ("6", 6),
    ("7", 7),
    ("8", 8),
    ("9", 9),
    ("10", 10),
    ("J", 10),
    ("Q", 10),
    ("K", 10),
]


def make_card(rank: str, suit: Suit = Suit.SPADES) -> Card:
    """Build a single card by rank."""
    values = dict(RANK_VALUES)
    if rank not in values:
        raise ValueError(f"Unknown rank: {rank}")
    return Card(suit=suit, rank=rank, value=values[rank])


def create_deck() -> list[Card]:
    """The 52-card multiset in suit/rank order."""
    return [Card(suit=suit, rank=rank, value=value) for suit in Suit for rank, value in RANK_VALUES]


def shuffled_deck(rng: random.Random | None = None) -> list[Card]:
    """A fresh deck under a uniform random permutation (Fisher-Yates)."""
    deck = create_deck()
    (rng or random.SystemRandom()).shuffle(deck)
    return deck


def _evaluate(cards: list[Card]) -> tuple[int, int]:
    total = sum(card.value for card in cards)
    aces_high = sum(1 for card in cards if card.rank == "A")
    while total > BLACKJACK and aces_high > 0:
        total -= ACE_DEMOTION
        aces_high -= 1
    return total, aces_high


def hand_value(cards: list[Card]) -> int:
    """Sum card values, demoting aces from 11 to 1 while the total exceeds 21.

    Which ace is demoted first does not matter; only the count does.
    """
    return _evaluate(cards)[0]


def is_soft(cards: list[Card]) -> bool:
    """True if at least one ace is still counted as 11."""
    return _evaluate(cards)[1] > 0
