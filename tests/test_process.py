"""Tests for the engine entry points: action parsing, initialization, dispatch."""

import pytest
from pydantic import ValidationError

from app.schemas.game_engine import (
    BlackjackState,
    GameType,
    HangmanState,
    PlaceholderState,
    parse_game_document,
)
from app.services.game.engine import (
    DealAction,
    GuessAction,
    SelectWordAction,
    build_action_from_payload,
    get_engine,
    initialize_game,
    process_action,
)

from .conftest import PLAYER_1_ID, PLAYER_2_ID, create_hangman


class TestBuildAction:
    def test_builds_typed_action(self):
        action = build_action_from_payload({"action_type": "guess", "letter": "e"})
        assert isinstance(action, GuessAction)
        assert action.letter == "E"

    def test_custom_word_fields(self):
        action = build_action_from_payload(
            {"action_type": "select_word", "source": "custom", "word": "river"}
        )
        assert isinstance(action, SelectWordAction)
        assert action.word == "river"

    @pytest.mark.parametrize("payload", [{}, {"action_type": "roll"}, {"action_type": 3}])
    def test_unknown_action_type(self, payload):
        with pytest.raises(ValueError):
            build_action_from_payload(payload)

    def test_invalid_fields(self):
        with pytest.raises(ValidationError):
            build_action_from_payload({"action_type": "guess", "letter": "ab"})


class TestInitializeGame:
    def test_emits_sequenced_initialized_event(self):
        result = initialize_game(GameType.HANGMAN, [PLAYER_1_ID, PLAYER_2_ID])

        assert result.success
        assert isinstance(result.state, HangmanState)
        assert [e.event_type for e in result.events] == ["game_initialized"]
        assert result.events[0].seq == 0
        assert result.events[0].player_ids == [PLAYER_1_ID, PLAYER_2_ID]
        assert result.state.event_seq == 1

    def test_blackjack_gets_a_table_per_player(self):
        result = initialize_game("blackjack", [PLAYER_1_ID, PLAYER_2_ID])
        assert isinstance(result.state, BlackjackState)
        assert [t.player_id for t in result.state.tables] == [PLAYER_1_ID, PLAYER_2_ID]

    @pytest.mark.parametrize("game_type", ["poker", "uno"])
    def test_placeholder_games(self, game_type):
        result = initialize_game(game_type, [PLAYER_1_ID])
        assert isinstance(result.state, PlaceholderState)
        assert result.state.started

    def test_unknown_game_type(self):
        with pytest.raises(ValueError):
            initialize_game("chess", [PLAYER_1_ID])


class TestProcessAction:
    def test_event_seq_continues_from_document(self):
        state = create_hangman("DOG").model_copy(update={"event_seq": 5})

        result = process_action(state, GuessAction(letter="O"), PLAYER_1_ID)
        assert result.success
        assert result.events[0].seq == 5
        assert result.state.event_seq == 6

    def test_failure_leaves_no_state(self):
        state = create_hangman("DOG")
        result = process_action(state, GuessAction(letter="O"), PLAYER_2_ID)
        assert not result.success
        assert result.state is None
        assert result.error_code == "NOT_YOUR_TURN"

    def test_action_for_another_game(self):
        result = process_action(create_hangman("DOG"), DealAction(), PLAYER_1_ID)
        assert result.error_code == "INVALID_ACTION"

    def test_placeholder_rejects_all_actions(self):
        state = initialize_game("uno", [PLAYER_1_ID]).state
        result = process_action(state, DealAction(), PLAYER_1_ID, is_host=True)
        assert result.error_code == "GAME_NOT_IMPLEMENTED"


class TestGameDocument:
    def test_parses_by_game_type(self):
        dumped = initialize_game("hangman", [PLAYER_1_ID]).state.model_dump(mode="json")
        assert isinstance(parse_game_document(dumped), HangmanState)

    def test_rejects_unknown_game_type(self):
        with pytest.raises(ValidationError):
            parse_game_document({"game_type": "chess"})

    def test_engine_lookup(self):
        assert get_engine("blackjack").game_type == GameType.BLACKJACK
        with pytest.raises(ValueError):
            get_engine("chess")
