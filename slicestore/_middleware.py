from __future__ import annotations

import logging

from typing import Any, Callable, NamedTuple

from pydantic import BaseModel, ConfigDict

from ._reducer import Action, Immediate, Outcome, invoke, is_asynchronous
from ._selector import Selector


__all__ = (
    "Middleware",
    "MiddlewareContext",
    "MiddlewarePipeline",
)


logger = logging.getLogger(__name__)


class MiddlewareContext(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    state: Any
    global_state: Any
    action_name: str
    payload: tuple[Any, ...] = ()


Middleware = Callable[[MiddlewareContext], Any]


class _Entry(NamedTuple):
    selector: Selector
    fn: Middleware
    asynchronous: bool


class MiddlewarePipeline:
    _entries: dict[str, _Entry]

    def __init__(self) -> None:
        self._entries = {}

    def register(
        self,
        action_name: str,
        selector: Selector,
        fn: Middleware
    ) -> None:
        if action_name in self._entries:
            logger.debug("Replacing middleware for %r", action_name)

        self._entries[action_name] = _Entry(selector, fn, is_asynchronous(fn))

    def intercept(self, state: Any, action: Action) -> Outcome:
        entry = self._entries.get(action.name)

        if entry is None:
            return Immediate(state)

        context = MiddlewareContext(
            state=entry.selector.get(state),
            global_state=state,
            action_name=action.name,
            payload=action.payload
        )

        outcome = invoke(entry.fn, entry.asynchronous, context)

        return outcome.map(lambda value: entry.selector.update(state, value))
