"""
Skill handler adapters for the Verifier Service.
"""

from .ability import Ability, AbilityHandler, create_ability_handler, serialize_response

__all__ = [
    "Ability",
    "AbilityHandler",
    "create_ability_handler",
    "serialize_response",
]
