"""Merge small talk and intent answers into one reply."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from lumo.state.conversation_state import LumoResponse

NO_RESPONSE_TEXT = "I'm not sure how to respond to that."


@dataclass
class ResponseComponent:
    type: str  # greeting | intent | search | fallback
    text: str
    suggestions: Optional[List[Dict[str, Any]]] = None
    command: Optional[Dict[str, str]] = None
    media: Optional[Dict[str, Any]] = None


class ResponseCoordinator:
    """Greeting text goes first, the main answer owns suggestions and commands."""

    @staticmethod
    def compose(components: List[ResponseComponent]) -> LumoResponse:
        greeting = next((c for c in components if c.type == "greeting"), None)
        main = next((c for c in components if c.type in ("intent", "search")), None)
        fallback = next((c for c in components if c.type == "fallback"), None)

        if greeting and main:
            return {
                "text": f"{greeting.text}\n\n{main.text}",
                "suggestions": main.suggestions or greeting.suggestions,
                "command": main.command,
                "media": main.media,
            }

        if main:
            return {"text": main.text, "suggestions": main.suggestions, "command": main.command, "media": main.media}

        if greeting:
            return {"text": greeting.text, "suggestions": greeting.suggestions, "command": greeting.command}

        if fallback:
            return {"text": fallback.text, "suggestions": fallback.suggestions, "command": fallback.command}

        return {"text": NO_RESPONSE_TEXT, "suggestions": []}
