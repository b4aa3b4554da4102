from __future__ import annotations

import asyncio
import copy
import inspect
import logging

from collections.abc import Mapping
from typing import (
    Any,
    Awaitable,
    Callable,
    Generator,
    Generic,
    Optional,
    TypeVar,
    Union
)

from ._bus import Listener, NotificationBus, Unsubscribe
from ._config import ExtensionConfig, StoreConfig, parse_config
from ._errors import (
    InvalidArgumentsError,
    InvalidSelectorError,
    ReservedKeyError,
    StoreError
)
from ._link import BoundLink, find_links, link
from ._middleware import Middleware, MiddlewarePipeline
from ._reducer import (
    EXTEND_ACTION,
    INIT_ACTION,
    LINK_ACTION,
    Action,
    MountedReducer,
    Outcome,
    compose,
    settle
)
from ._selector import Selector, compile_selector


__all__ = (
    "BatchItem",
    "Completion",
    "Dispatcher",
    "Store",

    "create_store"
)


logger = logging.getLogger(__name__)


S = TypeVar("S")

ChainedReducer = Callable[[Any, Action], Outcome]
Pipeline = Generator[Awaitable[Any], Any, S]
BatchItem = Union[str, tuple, list]


class Completion(Generic[S]):
    """Result of a dispatch.

    Synchronous pipelines finish before the completion is returned. A
    pipeline that reached an asynchronous reducer or middleware finishes in
    a task on the running loop; awaiting the completion returns the committed
    state or raises what the pipeline raised.
    """

    _state: Optional[S]
    _task: Optional[asyncio.Task]

    def __init__(
        self,
        state: Optional[S] = None,
        task: Optional[asyncio.Task] = None
    ) -> None:
        self._state = state
        self._task = task

    def __repr__(self) -> str:
        status = "done" if self.done() else "pending"

        return f"<Completion {status}>"

    def __await__(self) -> Generator[Any, None, S]:
        if self._task is None:
            return self._state  # type: ignore[return-value]

        return (yield from self._task.__await__())

    def done(self) -> bool:
        return self._task is None or self._task.done()

    def result(self) -> S:
        if self._task is None:
            return self._state  # type: ignore[return-value]

        return self._task.result()


def _discard(awaitable: Awaitable[Any]) -> None:
    if inspect.iscoroutine(awaitable):
        awaitable.close()


async def _finish(pipeline: Pipeline, awaitable: Awaitable[Any]) -> Any:
    try:
        while True:
            value = await awaitable

            try:
                awaitable = pipeline.send(value)
            except StopIteration as stop:
                return stop.value
    finally:
        pipeline.close()


def _drive(pipeline: Pipeline) -> Completion:
    try:
        awaitable = next(pipeline)
    except StopIteration as stop:
        return Completion(stop.value)

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        pipeline.close()
        _discard(awaitable)

        raise StoreError(
            "Asynchronous actions require a running event loop"
        ) from None

    return Completion(task=loop.create_task(_finish(pipeline, awaitable)))


def _fresh_root(state: Any) -> Any:
    # copy.copy hands back immutable containers unchanged.
    if type(state) is tuple:
        return tuple(list(state))

    if type(state) is frozenset:
        return frozenset(list(state))

    return copy.copy(state)


class _StateContainer(Generic[S]):
    state: S
    reducers: tuple[ChainedReducer, ...]

    def __init__(self, state: S) -> None:
        self.state = state
        self.reducers = ()

    def read(self) -> S:
        return self.state

    def commit(self, state: S) -> None:
        self.state = state

    def mount(self, reducer: ChainedReducer) -> None:
        self.reducers = self.reducers + (reducer,)

    def unmount(self, reducer: ChainedReducer) -> None:
        self.reducers = tuple(r for r in self.reducers if r is not reducer)


class Dispatcher(Generic[S]):
    def __init__(self, store: Store[S]) -> None:
        self._store = store

    def __repr__(self) -> str:
        return f"<Dispatcher of {self._store!r}>"

    def __call__(self, action_name: str, *payload: Any) -> Completion[S]:
        action = self._store._make_action(action_name, payload)

        logger.debug("Dispatching %r", action.name)

        return _drive(self._store._run(action))

    def batch(self, *items: BatchItem) -> Completion[S]:
        actions = [self._parse_item(item) for item in items]

        logger.debug("Dispatching batch of %d actions", len(actions))

        return _drive(self._store._run_batch(actions))

    def _parse_item(self, item: BatchItem) -> Action:
        if isinstance(item, str):
            return self._store._make_action(item, ())

        if isinstance(item, (tuple, list)) and item:
            name, *payload = item

            return self._store._make_action(name, tuple(payload))

        raise InvalidArgumentsError(
            f"Batch items should be (action_name, *payload), got {item!r}"
        )


class _BoundActions:
    def __init__(self, store: Store) -> None:
        self._store = store

    def __getattr__(self, name: str) -> Callable[..., Completion]:
        if name.startswith("_") or name not in self._store._action_names:
            raise AttributeError(name)

        dispatch = self._store.dispatch

        def bound_action(*payload: Any) -> Completion:
            return dispatch(name, *payload)

        bound_action.__name__ = name

        return bound_action

    def __dir__(self) -> list[str]:
        return sorted(self._store._action_names)


class Store(Generic[S]):
    dispatch: Dispatcher[S]
    actions: _BoundActions
    upstream: frozenset[Store]

    link = staticmethod(link)

    _container: _StateContainer[S]
    _bus: NotificationBus
    _middleware: MiddlewarePipeline
    _action_names: set[str]
    _selector_root: Optional[str]

    def __init__(self, config: StoreConfig) -> None:
        self._selector_root = config.selector_root
        self._action_names = set()

        self._container = _StateContainer(config.state)
        self._bus = NotificationBus()
        self._middleware = MiddlewarePipeline()

        self.dispatch = Dispatcher(self)
        self.actions = _BoundActions(self)

        main_reducer = compose(config.actions, config.state)
        self._action_names.update(main_reducer.names)
        self._container.mount(main_reducer)

        links = list(find_links(config.state))
        self.upstream = frozenset().union(*(
            {source, *getattr(source, "upstream", ())}
            for _, marker in links
            for source in marker.sources
        ))

        for steps, marker in links:
            BoundLink(self, steps, marker).attach()

        self._bootstrap(INIT_ACTION)

        for extension in config.extensions:
            self._mount(extension.path, extension)

    def __repr__(self) -> str:
        return f"<Store actions={sorted(self._action_names)!r}>"

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or name not in self.__dict__.get("_action_names", ()):
            raise AttributeError(name)

        return getattr(self.actions, name)

    def get_state(self, selector: Union[str, Callable[[S], Any], None] = None) -> Any:
        state = self._container.read()

        if selector is None:
            return state

        if isinstance(selector, str):
            return compile_selector(selector, self._selector_root).get(state)

        if callable(selector):
            return selector(state)

        raise InvalidArgumentsError(
            f"Selector should be a path string or a callable, got {selector!r}"
        )

    def subscribe(
        self,
        action_name: Union[str, Listener, None] = None,
        listener: Optional[Listener] = None
    ) -> Unsubscribe:
        if callable(action_name) and listener is None:
            return self._bus.subscribe_global(action_name)

        if isinstance(action_name, str) and callable(listener):
            return self._bus.subscribe_named(action_name, listener)

        raise InvalidArgumentsError(
            "Incorrect subscribe arguments. "
            "Expected: subscribe(listener) or subscribe(action_name, listener)"
        )

    on = subscribe

    def extend(
        self,
        path: Union[str, Mapping[str, Any], ExtensionConfig, None] = None,
        config: Union[Mapping[str, Any], ExtensionConfig, None] = None
    ) -> None:
        if config is None and not isinstance(path, (str, type(None))):
            path, config = None, path

        if path is not None and not isinstance(path, str):
            raise InvalidSelectorError(
                f"Extension path should be a string, got {path!r}"
            )

        extension = parse_config(ExtensionConfig, config)

        self._mount(path if path is not None else extension.path, extension)

    def middleware(self, action_name: str, path: str, fn: Middleware) -> None:
        if not (
            isinstance(action_name, str) and
            isinstance(path, str) and
            callable(fn)
        ):
            raise InvalidArgumentsError(
                "Incorrect middleware arguments. "
                "Expected: middleware(action_name, path, fn)"
            )

        if Action(name=action_name).internal:
            raise ReservedKeyError(f"{action_name!r} is a reserved action name")

        selector = self._compile(path)
        self._middleware.register(action_name, selector, fn)

        logger.debug("Registered middleware for %r at %r", action_name, path)

    def _compile(self, path: str) -> Selector:
        selector = compile_selector(path, self._selector_root)

        if not selector.resolves(self._container.read()):
            raise InvalidSelectorError(
                f"Selector {path!r} does not resolve against the current state"
            )

        return selector

    def _mount(self, path: Optional[str], extension: ExtensionConfig) -> None:
        selector = self._compile(path) if path else None
        reducer = compose(extension.actions, extension.state)

        mounted = MountedReducer(reducer, selector)
        added = set(reducer.names) - self._action_names

        self._action_names.update(added)
        self._container.mount(mounted)

        try:
            self._bootstrap(EXTEND_ACTION)
        except Exception:
            self._container.unmount(mounted)
            self._action_names.difference_update(added)

            raise

        logger.debug("Mounted reducer at %r with %r", path, reducer.names)

    def _bootstrap(self, action_name: str) -> None:
        _drive(self._run(Action(name=action_name)))

    def _make_action(self, action_name: Any, payload: tuple) -> Action:
        if not isinstance(action_name, str):
            raise InvalidArgumentsError(
                f"Action name should be a string, got {action_name!r}"
            )

        action = Action(name=action_name, payload=payload)

        if action.internal:
            raise ReservedKeyError(f"{action_name!r} is a reserved action name")

        return action

    def _resolve(self, action: Action) -> Pipeline[S]:
        state = self._container.read()
        previous = state

        for reducer in self._container.reducers:
            state = yield from settle(reducer(state, action))

        if not action.internal:
            state = yield from settle(self._middleware.intercept(state, action))

        if state is previous:
            state = _fresh_root(state)

        self._container.commit(state)

        return state

    def _run(self, action: Action) -> Pipeline[S]:
        state = yield from self._resolve(action)

        if not action.internal:
            self._bus.notify(state, action.name)

        return state

    def _run_batch(self, actions: list[Action]) -> Pipeline[S]:
        state = self._container.read()

        for action in actions:
            state = yield from self._resolve(action)

        for action_name in dict.fromkeys(action.name for action in actions):
            self._bus.notify(state, action_name)

        return state

    def _write_link(self, selector: Selector, value: Any, notify: bool) -> None:
        state = selector.update(self._container.read(), value)
        self._container.commit(state)

        if notify:
            self._bus.notify(state, LINK_ACTION)


def create_store(config: Any = None, /, **kwargs: Any) -> Store:
    return Store(parse_config(StoreConfig, config, kwargs))
