"""Scripted, node-based conversation flows (case-study walkthroughs).

A FlowToken records where the visitor is. ``process`` looks for the first
transition of the current node whose trigger is ``*`` or appears in the
input, and moves the token there. A node without transitions is terminal:
input is matched against ``root`` again so the visitor can restart a flow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import List, Optional

from lumo.config.knowledge import FlowCatalog, FlowNode, FlowTransition
from lumo.state.conversation_state import Command, FlowToken

logger = logging.getLogger(__name__)

ROOT_NODE = "root"
WILDCARD = "*"


@dataclass
class FlowResponse:
    text: str
    suggestions: List[str]
    command: Optional[Command] = None


@dataclass
class FlowResult:
    next_token: FlowToken
    response: Optional[FlowResponse] = None


class FlowEngine:
    def __init__(self, catalog: FlowCatalog):
        self.nodes = catalog.nodes

    def create_token(self) -> FlowToken:
        return FlowToken()

    def process(self, token: FlowToken, user_input: str) -> FlowResult:
        normalized = user_input.lower().strip()

        current = self.nodes.get(token.current_node_id)
        if current is None or not current.transitions:
            current = self.nodes[ROOT_NODE]

        match = self._match(current, normalized)
        if match is None:
            return FlowResult(next_token=token)

        target = self.nodes[match.target]
        next_token = replace(
            token,
            current_node_id=target.id,
            history=token.history + [token.current_node_id],
            is_flow_active=bool(target.transitions),
        )
        logger.debug(f"Flow transition {token.current_node_id} -> {target.id} on {match.trigger!r}")

        command = {"type": target.command.type, "value": target.command.value} if target.command else None
        return FlowResult(
            next_token=next_token,
            response=FlowResponse(text=target.message, suggestions=list(target.suggestions), command=command),
        )

    @staticmethod
    def _match(node: FlowNode, normalized: str) -> Optional[FlowTransition]:
        for transition in node.transitions:
            if transition.trigger == WILDCARD or transition.trigger in normalized:
                return transition
        return None
