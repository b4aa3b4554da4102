from ._bus import Listener, NotificationBus, Unsubscribe
from ._config import ExtensionConfig, StoreConfig
from ._errors import (
    ConfigError,
    CyclicLinkError,
    DuplicateActionError,
    InvalidArgumentsError,
    InvalidSelectorError,
    ReservedKeyError,
    StoreError
)
from ._link import Link, link
from ._middleware import Middleware, MiddlewareContext
from ._reducer import (
    Action,
    LINK_ACTION,
    Reducer,
    ReducerBuilder,
    compose,
    deferred,
    slice_reducer
)
from ._selector import Selector, compile_selector
from ._store import Completion, Dispatcher, Store, create_store


__all__ = (
    "Action",
    "Completion",
    "ConfigError",
    "CyclicLinkError",
    "Dispatcher",
    "DuplicateActionError",
    "ExtensionConfig",
    "InvalidArgumentsError",
    "InvalidSelectorError",
    "LINK_ACTION",
    "Link",
    "Listener",
    "Middleware",
    "MiddlewareContext",
    "NotificationBus",
    "Reducer",
    "ReducerBuilder",
    "ReservedKeyError",
    "Selector",
    "Store",
    "StoreConfig",
    "StoreError",
    "Unsubscribe",

    "compile_selector",
    "compose",
    "create_store",
    "deferred",
    "link",
    "slice_reducer"
)
