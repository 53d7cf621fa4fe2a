"""Blackjack state machine.

Each participant plays an independent table against the dealer with its own
shoe. Every table lives in the shared document, so all participants see all
tables, but an action only ever touches the actor's own table.

Table phases: betting -> playing -> dealer -> finished -> betting
"""

import logging
import random
from typing import Any

from pydantic import BaseModel

from app.schemas.game_engine import (
    BlackjackOutcome,
    BlackjackPhase,
    BlackjackState,
    BlackjackTable,
    Card,
    GameDocument,
    GameType,
)

from .actions import DealAction, HitAction, NewHandAction, StandAction
from .base import GameEngine
from .cards import BLACKJACK, hand_value, shuffled_deck
from .events import AnyGameEvent, CardDrawn, CardsDealt, DealerPlayed, HandFinished, TableReset
from .validation import ProcessResult, ValidationResult

logger = logging.getLogger(__name__)

DEALER_STANDS_ON = 17

# Phase each action is valid in
_REQUIRED_PHASE: dict[type[BaseModel], BlackjackPhase] = {
    DealAction: BlackjackPhase.BETTING,
    HitAction: BlackjackPhase.PLAYING,
    StandAction: BlackjackPhase.PLAYING,
    NewHandAction: BlackjackPhase.FINISHED,
}


def determine_outcome(player_total: int, dealer_total: int) -> tuple[BlackjackOutcome, str]:
    """Settle a hand. Player bust is checked before dealer bust."""
    if player_total > BLACKJACK:
        return BlackjackOutcome.LOSE, "bust"
    if dealer_total > BLACKJACK:
        return BlackjackOutcome.WIN, "dealer_bust"
    if player_total > dealer_total:
        return BlackjackOutcome.WIN, "higher_total"
    if dealer_total > player_total:
        return BlackjackOutcome.LOSE, "lower_total"
    return BlackjackOutcome.PUSH, "tie"


def _draw(shoe: list[Card]) -> tuple[Card, list[Card]]:
    """Take the top card without replacement."""
    return shoe[-1], shoe[:-1]


def _finish(table: BlackjackTable, natural: bool = False) -> tuple[BlackjackTable, HandFinished]:
    player_total = hand_value(table.player_hand)
    dealer_total = hand_value(table.dealer_hand)
    outcome, reason = determine_outcome(player_total, dealer_total)
    if natural and outcome == BlackjackOutcome.WIN:
        reason = "natural"

    logger.debug(
        "Table %s finished: outcome=%s reason=%s player=%d dealer=%d",
        table.player_id[:8],
        outcome.value,
        reason,
        player_total,
        dealer_total,
    )
    finished = table.model_copy(
        update={"phase": BlackjackPhase.FINISHED, "outcome": outcome, "reason": reason}
    )
    event = HandFinished(
        player_id=table.player_id,
        outcome=outcome,
        reason=reason,
        player_total=player_total,
        dealer_total=dealer_total,
    )
    return finished, event


def deal_table(
    table: BlackjackTable, rng: random.Random | None = None
) -> tuple[BlackjackTable, list[AnyGameEvent]]:
    """betting -> playing (or straight to finished on a natural)."""
    shoe = shuffled_deck(rng)
    player_hand: list[Card] = []
    dealer_hand: list[Card] = []
    for hand in (player_hand, player_hand, dealer_hand, dealer_hand):
        card, shoe = _draw(shoe)
        hand.append(card)

    dealt = table.model_copy(
        update={
            "phase": BlackjackPhase.PLAYING,
            "shoe": shoe,
            "player_hand": player_hand,
            "dealer_hand": dealer_hand,
            "outcome": None,
            "reason": None,
        }
    )
    player_total = hand_value(player_hand)
    natural = player_total == BLACKJACK
    events: list[AnyGameEvent] = [
        CardsDealt(player_id=table.player_id, player_total=player_total, natural=natural)
    ]

    if natural:
        dealt, finished_event = _finish(dealt, natural=True)
        events.append(finished_event)
    return dealt, events


def stand_table(table: BlackjackTable) -> tuple[BlackjackTable, list[AnyGameEvent]]:
    """playing -> dealer -> finished. The dealer draws until reaching 17."""
    shoe = list(table.shoe)
    dealer_hand = list(table.dealer_hand)
    drawn = 0
    while hand_value(dealer_hand) < DEALER_STANDS_ON:
        card, shoe = _draw(shoe)
        dealer_hand.append(card)
        drawn += 1

    dealer_done = table.model_copy(
        update={"phase": BlackjackPhase.DEALER, "shoe": shoe, "dealer_hand": dealer_hand}
    )
    events: list[AnyGameEvent] = [
        DealerPlayed(
            player_id=table.player_id,
            cards_drawn=drawn,
            dealer_total=hand_value(dealer_hand),
        )
    ]
    finished, finished_event = _finish(dealer_done)
    events.append(finished_event)
    return finished, events


def hit_table(table: BlackjackTable) -> tuple[BlackjackTable, list[AnyGameEvent]]:
    """Draw one card. Bust finishes immediately; exactly 21 stands."""
    card, shoe = _draw(list(table.shoe))
    player_hand = [*table.player_hand, card]
    hit = table.model_copy(update={"shoe": shoe, "player_hand": player_hand})

    total = hand_value(player_hand)
    events: list[AnyGameEvent] = [CardDrawn(player_id=table.player_id, player_total=total)]

    if total > BLACKJACK:
        finished, finished_event = _finish(hit)
        events.append(finished_event)
        return finished, events

    if total == BLACKJACK:
        stood, stand_events = stand_table(hit)
        events.extend(stand_events)
        return stood, events

    return hit, events


def reset_table(table: BlackjackTable) -> tuple[BlackjackTable, list[AnyGameEvent]]:
    """finished -> betting. The next deal brings a fresh shoe."""
    reset = table.model_copy(
        update={
            "phase": BlackjackPhase.BETTING,
            "shoe": [],
            "player_hand": [],
            "dealer_hand": [],
            "outcome": None,
            "reason": None,
        }
    )
    return reset, [TableReset(player_id=table.player_id)]


def _find_table(state: BlackjackState, player_id: str) -> BlackjackTable | None:
    return next((t for t in state.tables if t.player_id == player_id), None)


class BlackjackEngine(GameEngine):
    game_type = GameType.BLACKJACK
    action_types = (DealAction, HitAction, StandAction, NewHandAction)

    def init(self, player_ids: list[str], rng: random.Random | None = None) -> BlackjackState:
        return BlackjackState(tables=[BlackjackTable(player_id=pid) for pid in player_ids])

    def validate(
        self, state: BlackjackState, action: BaseModel, actor_id: str
    ) -> ValidationResult:
        table = _find_table(state, actor_id)
        if table is None:
            return ValidationResult.error("NO_TABLE", "You do not have a table in this game")

        required = _REQUIRED_PHASE[type(action)]
        if table.phase != required:
            logger.warning(
                "Validation failed: INVALID_PHASE, action=%s, phase=%s, player=%s",
                type(action).__name__,
                table.phase.value,
                actor_id[:8],
            )
            return ValidationResult.error(
                "INVALID_PHASE",
                f"Cannot {action.action_type} while the table is {table.phase.value}",
            )
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
        if not isinstance(document, BlackjackState) or not self.accepts(action):
            return ProcessResult.failure("INVALID_ACTION", "Action does not apply to Blackjack")

        validation = self.validate(document, action, actor_id)
        if not validation.is_valid:
            return validation.to_process_result()

        table = _find_table(document, actor_id)
        if isinstance(action, DealAction):
            new_table, events = deal_table(table, rng)
        elif isinstance(action, HitAction):
            new_table, events = hit_table(table)
        elif isinstance(action, StandAction):
            new_table, events = stand_table(table)
        else:
            new_table, events = reset_table(table)

        tables = [new_table if t.player_id == actor_id else t for t in document.tables]
        return ProcessResult.ok(document.model_copy(update={"tables": tables}), events)

    def is_terminal(self, document: GameDocument) -> bool:
        """A round is over once every table has settled."""
        if not isinstance(document, BlackjackState) or not document.tables:
            return False
        return all(t.phase == BlackjackPhase.FINISHED for t in document.tables)

    def add_player(self, document: GameDocument, player_id: str) -> GameDocument:
        if not isinstance(document, BlackjackState) or _find_table(document, player_id):
            return document
        tables = [*document.tables, BlackjackTable(player_id=player_id)]
        return document.model_copy(update={"tables": tables})

    def remove_player(self, document: GameDocument, player_id: str) -> GameDocument:
        if not isinstance(document, BlackjackState):
            return document
        tables = [t for t in document.tables if t.player_id != player_id]
        return document.model_copy(update={"tables": tables})

    def public_view(self, document: GameDocument) -> dict[str, Any]:
        """Hide the shoe order and, while a hand is live, the dealer's hole card."""
        view = document.model_dump(mode="json")
        for table in view.get("tables", []):
            shoe = table.pop("shoe", [])
            table["shoe_remaining"] = len(shoe)
            dealer_hand = table["dealer_hand"]
            if table["phase"] == BlackjackPhase.PLAYING.value and len(dealer_hand) > 1:
                table["dealer_hand"] = [dealer_hand[0], {"hidden": True}]
                table["dealer_total"] = None
            else:
                table["dealer_total"] = _total_of(dealer_hand) if dealer_hand else None
            table["player_total"] = _total_of(table["player_hand"])
        return view


def _total_of(cards: list[dict[str, Any]]) -> int:
    return hand_value([Card.model_validate(c) for c in cards])
