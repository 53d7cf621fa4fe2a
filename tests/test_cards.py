"""Tests for deck construction and hand evaluation."""

from collections import Counter

from app.services.game.engine.cards import create_deck, hand_value, is_soft, shuffled_deck

from .conftest import StackedDeck, cards


class TestHandValue:
    """Aces count 11 and are demoted to 1 only while the hand would bust."""

    def test_two_aces_and_nine_is_twenty_one(self):
        assert hand_value(cards("A", "A", "9")) == 21

    def test_two_face_cards_is_twenty(self):
        assert hand_value(cards("K", "Q")) == 20

    def test_ace_king_is_twenty_one(self):
        assert hand_value(cards("A", "K")) == 21

    def test_three_aces_and_eight_is_twenty_one(self):
        assert hand_value(cards("A", "A", "A", "8")) == 21

    def test_empty_hand_is_zero(self):
        assert hand_value([]) == 0

    def test_hard_bust_is_not_rescued(self):
        assert hand_value(cards("K", "Q", "5")) == 25

    def test_soft_hand_detection(self):
        assert is_soft(cards("A", "6"))
        assert not is_soft(cards("A", "6", "K"))
        assert not is_soft(cards("10", "7"))


class TestDeck:
    def test_deck_is_standard_52_card_multiset(self):
        deck = create_deck()
        assert len(deck) == 52
        assert len({(c.suit, c.rank) for c in deck}) == 52
        ranks = Counter(c.rank for c in deck)
        assert all(count == 4 for count in ranks.values())
        assert len(ranks) == 13

    def test_card_values(self):
        values = {c.rank: c.value for c in create_deck()}
        assert values["A"] == 11
        assert values["7"] == 7
        assert values["10"] == 10
        assert values["J"] == values["Q"] == values["K"] == 10

    def test_shuffle_preserves_cards(self):
        deck = shuffled_deck(StackedDeck("A", "K"))
        assert sorted((c.suit, c.rank) for c in deck) == sorted(
            (c.suit, c.rank) for c in create_deck()
        )
        assert [deck[-1].rank, deck[-2].rank] == ["A", "K"]
