from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    ValidationError,
    field_validator,
    model_validator
)

from ._errors import ConfigError


__all__ = (
    "ActionMap",
    "ExtensionConfig",
    "StoreConfig",

    "parse_config"
)


ActionMap = Union[
    dict[str, Callable[..., Any]],
    list[tuple[str, Callable[..., Any]]]
]

_OPTION_KEYS = ("state", "actions", "extensions", "selector_root", "path")


def _collect_flat_actions(data: Any) -> Any:
    if not isinstance(data, Mapping):
        return data

    flat = [
        (key, value) for key, value in data.items()
        if key not in _OPTION_KEYS and callable(value)
    ]

    if not flat:
        return data

    collected = {
        key: value for key, value in data.items()
        if key in _OPTION_KEYS or not callable(value)
    }

    declared = collected.get("actions")

    if isinstance(declared, Mapping):
        flat = list(declared.items()) + flat
    elif declared is not None:
        flat = list(declared) + flat

    collected["actions"] = flat

    return collected


class ExtensionConfig(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    path: Optional[str] = None
    state: Any = None
    actions: ActionMap

    @model_validator(mode="before")
    @classmethod
    def gather_actions(cls, data: Any) -> Any:
        return _collect_flat_actions(data)


class StoreConfig(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    state: Any
    actions: ActionMap
    extensions: list[ExtensionConfig] = []
    selector_root: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def gather_actions(cls, data: Any) -> Any:
        return _collect_flat_actions(data)

    @field_validator("selector_root")
    @classmethod
    def validate_selector_root(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.isidentifier():
            raise ValueError("selector_root must be an identifier")

        return value


def parse_config(
    model: type[BaseModel],
    config: Any,
    overrides: Optional[Mapping[str, Any]] = None
) -> Any:
    if config is None and overrides:
        config = {}

    if isinstance(config, model):
        return config

    if not isinstance(config, Mapping):
        raise ConfigError(
            f"Config object is required, got {type(config).__name__}"
        )

    data = dict(config)
    data.update(overrides or {})

    try:
        return model.model_validate(data)
    except ValidationError as error:
        raise ConfigError(str(error)) from error
