from __future__ import annotations

import functools
import inspect
import logging

from collections.abc import Iterable, Mapping
from typing import (
    Any,
    Awaitable,
    Callable,
    Generator,
    Generic,
    NamedTuple,
    Optional,
    TypeVar,
    Union
)

from pydantic import BaseModel, ConfigDict

from ._errors import ConfigError, DuplicateActionError, ReservedKeyError
from ._selector import Selector, compile_selector


__all__ = (
    "Action",
    "ActionFunction",
    "EXTEND_ACTION",
    "INIT_ACTION",
    "Immediate",
    "LINK_ACTION",
    "MountedReducer",
    "Outcome",
    "Pending",
    "RESERVED_NAMES",
    "Reducer",
    "ReducerBuilder",

    "compose",
    "deferred",
    "invoke",
    "is_asynchronous",
    "settle",
    "slice_reducer"
)


logger = logging.getLogger(__name__)


S = TypeVar("S")

ActionFunction = Callable[..., Any]

INIT_ACTION = "@@init"
EXTEND_ACTION = "@@extend"
LINK_ACTION = "link"

INTERNAL_PREFIX = "@@"

RESERVED_NAMES = frozenset((
    "actions",
    "dispatch",
    "extend",
    "get_state",
    "link",
    "middleware",
    "on",
    "state",
    "subscribe",
    "upstream"
))


class Action(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    payload: tuple[Any, ...] = ()

    @property
    def internal(self) -> bool:
        return self.name.startswith(INTERNAL_PREFIX)


def _identity(value: Any) -> Any:
    return value


class Immediate(NamedTuple):
    value: Any

    def map(self, fn: Callable[[Any], Any]) -> Immediate:
        return Immediate(fn(self.value))


class Pending(NamedTuple):
    awaitable: Awaitable[Any]
    then: Callable[[Any], Any] = _identity

    def map(self, fn: Callable[[Any], Any]) -> Pending:
        then = self.then

        return Pending(self.awaitable, lambda value: fn(then(value)))


Outcome = Union[Immediate, Pending]


def settle(outcome: Outcome) -> Generator[Awaitable[Any], Any, Any]:
    if isinstance(outcome, Pending):
        return outcome.then((yield outcome.awaitable))

    return outcome.value


def deferred(fn: ActionFunction) -> ActionFunction:
    """Mark a plain function that returns an awaitable as asynchronous."""
    setattr(fn, "__slicestore_deferred__", True)

    return fn


def is_asynchronous(fn: Callable[..., Any]) -> bool:
    return inspect.iscoroutinefunction(fn) or \
        getattr(fn, "__slicestore_deferred__", False)


def invoke(fn: Callable[..., Any], asynchronous: bool, *args: Any) -> Outcome:
    if asynchronous:
        return Pending(fn(*args))

    return Immediate(fn(*args))


class _Handler(NamedTuple):
    fn: ActionFunction
    asynchronous: bool


class Reducer(Generic[S]):
    state: Optional[S]

    _handlers: dict[str, _Handler]

    def __init__(
        self,
        handlers: Mapping[str, _Handler],
        state: Optional[S] = None
    ) -> None:
        self.state = state
        self._handlers = dict(handlers)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    def __call__(self, state: S, action: Action) -> Outcome:
        handler = self._handlers.get(action.name)

        if handler is None:
            return Immediate(state)

        return invoke(handler.fn, handler.asynchronous, state, *action.payload)


class ReducerBuilder(Generic[S]):
    def __init__(self, state: Optional[S] = None) -> None:
        self._state = state
        self._handlers: dict[str, _Handler] = {}

    def on(self, name: str, fn: ActionFunction) -> ReducerBuilder[S]:
        if not isinstance(name, str):
            raise ConfigError(f"Action name should be a string, got {name!r}")

        if name in RESERVED_NAMES or name.startswith(INTERNAL_PREFIX):
            raise ReservedKeyError(f"{name!r} is a reserved keyword")

        if name in self._handlers:
            raise DuplicateActionError(f"Action name {name!r} already exists")

        if not callable(fn):
            raise ConfigError(f"Action reducer for {name!r} should be callable")

        self._handlers[name] = _Handler(fn, is_asynchronous(fn))

        return self

    def build(self) -> Reducer[S]:
        return Reducer(self._handlers, self._state)


def compose(
    actions: Union[Mapping[str, ActionFunction], Iterable[tuple[str, ActionFunction]]],
    state: Optional[S] = None
) -> Reducer[S]:
    builder: ReducerBuilder[S] = ReducerBuilder(state)
    items = actions.items() if isinstance(actions, Mapping) else actions

    for name, fn in items:
        builder.on(name, fn)

    return builder.build()


class MountedReducer:
    """A reducer attached to the chain after the store was created.

    Mounted at a path it reads and writes only the value at that path and
    seeds it from the reducer's default state during its first bootstrap,
    unless the path already holds a value. Mounted without a path it works
    on the whole state and never seeds.

    An action may return a callable instead of a slice; the callable gets
    the whole state and returns the whole new state.
    """

    reducer: Reducer
    selector: Optional[Selector]

    def __init__(self, reducer: Reducer, selector: Optional[Selector]) -> None:
        self.reducer = reducer
        self.selector = selector

        self._fresh = True

    def __call__(self, state: Any, action: Action) -> Outcome:
        if self.selector is None:
            return self.reducer(state, action)

        current = self.selector.get(state)
        value = current

        if self._fresh and action.name == EXTEND_ACTION:
            self._fresh = False

            if current is None and self.reducer.state is not None:
                logger.debug("Seeding %r with default state", self.selector.path)
                value = self.reducer.state

        return self.reducer(value, action).map(
            lambda result: self._merge(state, current, result)
        )

    def _merge(self, state: Any, current: Any, result: Any) -> Any:
        assert self.selector is not None

        if callable(result):
            return result(state)

        if result is current:
            return state

        return self.selector.update(state, result)


def slice_reducer(
    path: str,
    fn: ActionFunction,
    pass_global: bool = False,
    root: Optional[str] = None
) -> ActionFunction:
    selector = compile_selector(path, root)

    def arguments(state: Any, payload: tuple[Any, ...]) -> tuple[Any, ...]:
        if pass_global:
            return (state, selector.get(state), *payload)

        return (selector.get(state), *payload)

    if is_asynchronous(fn):
        @functools.wraps(fn)
        async def reduce_slice_async(state: Any, *payload: Any) -> Any:
            result = await fn(*arguments(state, payload))

            return selector.update(state, result)

        return reduce_slice_async

    @functools.wraps(fn)
    def reduce_slice(state: Any, *payload: Any) -> Any:
        return selector.update(state, fn(*arguments(state, payload)))

    return reduce_slice
