"""
Adapter between verified skill requests and a skill's ability object.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from shared.logging import get_logger


logger = get_logger("verifier.ability")


class Ability(Protocol):
    """A skill implementation: takes the request body, returns a response."""

    async def handle(self, body: Dict[str, Any]) -> Any:
        ...


AbilityHandler = Callable[[Optional[Dict[str, Any]]], Awaitable[Optional[Dict[str, Any]]]]


def serialize_response(result: Any) -> Any:
    """Turn an ability result into a JSON-compatible value."""
    to_json = getattr(result, "to_json", None)
    if callable(to_json):
        return to_json()

    model_dump = getattr(result, "model_dump", None)
    if callable(model_dump):
        return model_dump(exclude_none=True)

    return result


def create_ability_handler(ability: Ability) -> AbilityHandler:
    """
    Wrap `ability` so it can be called with a decoded request body.

    Returns None (and warns once per handler) when there is no body to hand
    over; otherwise returns the serialized ability response. Errors raised by
    the ability propagate to the caller.
    """
    warned = False

    async def ability_handler(body: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        nonlocal warned

        if not body:
            if not warned:
                logger.warning("No request body found.")
                warned = True
            return None

        result = await ability.handle(body)
        return serialize_response(result)

    return ability_handler
