"""
Deadswitch Session State Machine
"""

from deadswitch.session.controller import (
    SessionController,
    Transition,
    Trigger,
    Effect,
    Notice,
)

__all__ = [
    "SessionController",
    "Transition",
    "Trigger",
    "Effect",
    "Notice",
]
