"""Creative session orchestration: actions, pure reducer, controller and store."""

from . import actions
from .actions import Action, Effect, ResultAction, UserAction
from .reducer import DEFAULT_RULES, SessionRules, Transition, new_session, reduce
from .controller import SessionController
from .store import InMemorySessionStore

__all__ = [
    "actions",
    "Action",
    "Effect",
    "ResultAction",
    "UserAction",
    "DEFAULT_RULES",
    "SessionRules",
    "Transition",
    "new_session",
    "reduce",
    "SessionController",
    "InMemorySessionStore",
]
