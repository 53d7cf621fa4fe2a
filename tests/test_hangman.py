"""Tests for the Hangman engine.

Critical scenarios tested:
- Host-only word selection, random and custom
- Win when every distinct letter is guessed
- Loss after six wrong guesses
- Round-robin guessing over the explicit turn order
- Roster changes mid-round keep the current guesser stable
"""

import random

import pytest

from app.schemas.game_engine import HangmanPhase, HangmanState
from app.services.game.engine import (
    MAX_WRONG_GUESSES,
    WORDS,
    GuessAction,
    HangmanEngine,
    HitAction,
    PlayAgainAction,
    SelectWordAction,
    clean_custom_word,
    initialize_game,
    process_action,
)
from app.services.game.engine.events import LetterGuessed, RoundEnded, WordSelected

from .conftest import PLAYER_1_ID, PLAYER_2_ID, PLAYER_3_ID, create_hangman


@pytest.fixture
def engine() -> HangmanEngine:
    return HangmanEngine()


@pytest.fixture
def setup_game() -> HangmanState:
    return initialize_game("hangman", [PLAYER_1_ID, PLAYER_2_ID]).state


class TestCleanCustomWord:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("  python ", "PYTHON"),
            ("Hello-World!", "HELLOWORLD"),
            ("r2d2", "RD"),
            ("", ""),
        ],
    )
    def test_result_is_upper_case_letters_only(self, raw: str, expected: str):
        assert clean_custom_word(raw) == expected


class TestSelectWord:
    def test_init_seeds_turn_order_from_roster(self, setup_game: HangmanState):
        assert setup_game.phase == HangmanPhase.SETUP
        assert setup_game.turn_order == [PLAYER_1_ID, PLAYER_2_ID]

    def test_random_word_comes_from_fixed_list(self, setup_game: HangmanState):
        result = process_action(
            setup_game, SelectWordAction(source="random"), PLAYER_1_ID, is_host=True,
            rng=random.Random(7),
        )
        assert result.success
        assert result.state.word in WORDS
        assert result.state.phase == HangmanPhase.PLAYING
        assert result.state.guessed_letters == []
        assert result.state.wrong_guesses == 0
        assert result.state.current_guesser == 0

    def test_custom_word_is_cleaned(self, setup_game: HangmanState):
        result = process_action(
            setup_game,
            SelectWordAction(source="custom", word=" cat-nap "),
            PLAYER_1_ID,
            is_host=True,
        )
        assert result.state.word == "CATNAP"
        assert result.state.word_source == "custom"
        event = result.events[0]
        assert isinstance(event, WordSelected)
        assert event.word_length == 6
        assert event.guesser_id == PLAYER_1_ID

    @pytest.mark.parametrize("word", ["ab", "a1!", "", None])
    def test_custom_word_needs_three_letters(self, setup_game: HangmanState, word):
        result = process_action(
            setup_game, SelectWordAction(source="custom", word=word), PLAYER_1_ID, is_host=True
        )
        assert not result.success
        assert result.error_code == "VALIDATION_ERROR"

    def test_non_host_cannot_select(self, setup_game: HangmanState):
        result = process_action(setup_game, SelectWordAction(), PLAYER_2_ID, is_host=False)
        assert result.error_code == "NOT_HOST"

    def test_cannot_select_mid_round(self, engine: HangmanEngine):
        result = engine.apply_action(
            create_hangman("CAT"), SelectWordAction(), PLAYER_1_ID, is_host=True
        )
        assert result.error_code == "INVALID_PHASE"


class TestGuess:
    def test_correct_guess_keeps_guesser(self, engine: HangmanEngine):
        result = engine.apply_action(create_hangman("CAT"), GuessAction(letter="c"), PLAYER_1_ID)
        assert result.success
        assert result.state.guessed_letters == ["C"]
        assert result.state.wrong_guesses == 0
        assert result.state.current_guesser == 0
        event = result.events[0]
        assert isinstance(event, LetterGuessed)
        assert event.correct
        assert event.next_guesser_id == PLAYER_1_ID

    def test_wrong_guess_advances_guesser(self, engine: HangmanEngine):
        result = engine.apply_action(create_hangman("CAT"), GuessAction(letter="Z"), PLAYER_1_ID)
        assert result.state.wrong_guesses == 1
        assert result.state.current_guesser == 1
        assert result.events[0].next_guesser_id == PLAYER_2_ID

    def test_guesser_wraps_round_robin(self, engine: HangmanEngine):
        state = create_hangman("CAT", current_guesser=1)
        result = engine.apply_action(state, GuessAction(letter="Z"), PLAYER_2_ID)
        assert result.state.current_guesser == 0

    def test_out_of_turn_guess_is_rejected(self, engine: HangmanEngine):
        result = engine.apply_action(create_hangman("CAT"), GuessAction(letter="C"), PLAYER_2_ID)
        assert result.error_code == "NOT_YOUR_TURN"

    def test_repeated_letter_is_rejected(self, engine: HangmanEngine):
        state = create_hangman("CAT", guessed=("C",))
        result = engine.apply_action(state, GuessAction(letter="c"), PLAYER_1_ID)
        assert result.error_code == "ALREADY_GUESSED"

    def test_guess_before_word_selected_is_rejected(self, setup_game: HangmanState):
        result = process_action(setup_game, GuessAction(letter="A"), PLAYER_1_ID)
        assert result.error_code == "INVALID_PHASE"

    def test_guess_must_be_a_letter(self):
        with pytest.raises(ValueError):
            GuessAction(letter="1")

    def test_blackjack_action_is_rejected(self, engine: HangmanEngine):
        result = engine.apply_action(create_hangman("CAT"), HitAction(), PLAYER_1_ID)
        assert result.error_code == "INVALID_ACTION"


class TestRoundEnd:
    def test_revealing_every_letter_wins(self, engine: HangmanEngine):
        state = create_hangman("BOOK", guessed=("B", "O"))
        result = engine.apply_action(state, GuessAction(letter="K"), PLAYER_1_ID)
        assert result.state.phase == HangmanPhase.WON
        ended = result.events[-1]
        assert isinstance(ended, RoundEnded)
        assert ended.word == "BOOK"

    def test_sixth_miss_loses(self, engine: HangmanEngine):
        state = create_hangman(
            "CAT", guessed=("Q", "W", "E", "R", "U"), wrong=MAX_WRONG_GUESSES - 1
        )
        result = engine.apply_action(state, GuessAction(letter="Z"), PLAYER_1_ID)
        assert result.state.wrong_guesses == MAX_WRONG_GUESSES
        assert result.state.phase == HangmanPhase.LOST
        assert engine.is_terminal(result.state)

    def test_no_guesses_after_round_ends(self, engine: HangmanEngine):
        state = create_hangman("CAT", guessed=("C", "A", "T"), phase=HangmanPhase.WON)
        result = engine.apply_action(state, GuessAction(letter="Z"), PLAYER_1_ID)
        assert result.error_code == "INVALID_PHASE"

    def test_play_again_returns_to_setup(self, engine: HangmanEngine):
        state = create_hangman("CAT", guessed=("C", "A", "T"), phase=HangmanPhase.WON)
        result = engine.apply_action(state, PlayAgainAction(), PLAYER_2_ID)
        assert result.state.phase == HangmanPhase.SETUP
        assert result.state.word == ""
        assert result.state.guessed_letters == []
        assert result.state.turn_order == [PLAYER_1_ID, PLAYER_2_ID]

    def test_play_again_mid_round_is_rejected(self, engine: HangmanEngine):
        result = engine.apply_action(create_hangman("CAT"), PlayAgainAction(), PLAYER_1_ID)
        assert result.error_code == "INVALID_PHASE"


class TestRosterChanges:
    def test_add_player_appends_to_turn_order(self, engine: HangmanEngine):
        state = engine.add_player(create_hangman("CAT"), PLAYER_3_ID)
        assert state.turn_order == [PLAYER_1_ID, PLAYER_2_ID, PLAYER_3_ID]

    def test_removing_earlier_player_keeps_current_guesser(self, engine: HangmanEngine):
        state = create_hangman(
            "CAT", turn_order=(PLAYER_1_ID, PLAYER_2_ID, PLAYER_3_ID), current_guesser=2
        )
        result = engine.remove_player(state, PLAYER_1_ID)
        assert result.turn_order == [PLAYER_2_ID, PLAYER_3_ID]
        assert result.turn_order[result.current_guesser] == PLAYER_3_ID

    def test_removing_current_guesser_passes_turn_on(self, engine: HangmanEngine):
        state = create_hangman(
            "CAT", turn_order=(PLAYER_1_ID, PLAYER_2_ID, PLAYER_3_ID), current_guesser=1
        )
        result = engine.remove_player(state, PLAYER_2_ID)
        assert result.turn_order[result.current_guesser] == PLAYER_3_ID

    def test_removing_last_in_order_wraps(self, engine: HangmanEngine):
        state = create_hangman("CAT", current_guesser=1)
        result = engine.remove_player(state, PLAYER_2_ID)
        assert result.current_guesser == 0


class TestPublicView:
    def test_word_is_masked_while_playing(self, engine: HangmanEngine):
        view = engine.public_view(create_hangman("CAT", guessed=("A",)))
        assert view["word"] is None
        assert view["revealed"] == [None, "A", None]
        assert view["word_length"] == 3
        assert view["current_guesser_id"] == PLAYER_1_ID

    def test_word_is_shown_after_loss(self, engine: HangmanEngine):
        view = engine.public_view(create_hangman("CAT", wrong=6, phase=HangmanPhase.LOST))
        assert view["word"] == "CAT"
