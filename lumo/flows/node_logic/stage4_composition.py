"""Compose small talk and the classified intent answer into one reply."""

from __future__ import annotations

import logging
from typing import List

from lumo.flows.node_logic.util_intent_handlers import execute_intent
from lumo.flows.node_logic.util_response_coordinator import ResponseComponent, ResponseCoordinator
from lumo.flows.node_logic.util_turn_context import TurnContext
from lumo.observability.langsmith_tracer import create_custom_span
from lumo.state.conversation_state import TurnState

logger = logging.getLogger(__name__)

SMALL_TALK_INTENT = "small_talk"


def compose_response(state: TurnState, turn: TurnContext) -> TurnState:
    """Build greeting / intent components and merge them.

    Answering an intent also updates memory: the intent is tracked, the first
    entity becomes the active topic and is pushed on the entity stack.
    """
    services = turn.services
    small_talk = state.get("small_talk")
    intent_score = state.get("intent_score")
    entities = state.get("entities", [])
    query = state["query"]

    components: List[ResponseComponent] = []
    with create_custom_span(
        name="compose_response",
        inputs={"intent": intent_score.intent if intent_score else None, "entities": [e.value for e in entities]},
    ):
        if small_talk and small_talk.is_small_talk:
            components.append(ResponseComponent(type="greeting", text=small_talk.response or ""))

        answered_intent = None
        if intent_score and services.intent_classifier.meets_threshold(intent_score):
            answer = execute_intent(turn, intent_score.intent, entities, query)
            components.append(
                ResponseComponent(
                    type="intent",
                    text=answer["text"],
                    suggestions=answer.get("suggestions"),
                    command=answer.get("command"),
                    media=answer.get("media"),
                )
            )
            answered_intent = intent_score.intent

            turn.context.track_intent(intent_score.intent, intent_score.confidence)
            if entities:
                turn.context.set_topic(entities[0].value)
                turn.context.add_entity(entities[0].type, entities[0].value)
            turn.dialogue.track_topic(intent_score.intent)

        if not components:
            return state

        response = ResponseCoordinator.compose(components)
        if not response.get("suggestions"):
            response["suggestions"] = turn.suggestions(None, 3)
        if turn.dialogue.user_profile is not None:
            response["suggestions"] = services.recommender.personalize_order(
                response["suggestions"], turn.dialogue.user_profile
            )

        if answered_intent:
            turn.track_intent(answered_intent, intent_score.confidence, [e.value for e in entities])
        turn.record_turn(query, answered_intent or SMALL_TALK_INTENT, entities, response["text"])

        state["answer"] = response
        state["turn_kind"] = "intent" if answered_intent else "small_talk"
        state["pipeline_halt"] = True
    return state
