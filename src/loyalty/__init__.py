"""Loyalty program factory.

Provides get_loyalty_program() / set_loyalty_program() to swap the
collaborator that receives paid-order awards.
"""

from loyalty.fake_adapter import FakeLoyaltyProgram
from loyalty.port import LoyaltyProgram

_current_program: LoyaltyProgram | None = None


def get_loyalty_program() -> LoyaltyProgram:
    """Return the current loyalty program. Defaults to FakeLoyaltyProgram."""
    global _current_program
    if _current_program is None:
        _current_program = FakeLoyaltyProgram()
    return _current_program


def set_loyalty_program(program: LoyaltyProgram) -> None:
    """Override the active loyalty program (useful for tests)."""
    global _current_program
    _current_program = program


def reset_loyalty_program() -> None:
    """Reset to default loyalty program."""
    global _current_program
    _current_program = None
