from __future__ import annotations

import copy
import re

from collections.abc import Mapping, MutableMapping, Sequence
from functools import lru_cache
from typing import Any, NamedTuple, Optional, Union

from pydantic import BaseModel

from ._errors import InvalidSelectorError


__all__ = (
    "Field",
    "Index",
    "Selector",
    "Step",

    "compile_selector",
    "render_path"
)


_IDENTIFIER = r"[A-Za-z_]\w*"
_GRAMMAR = re.compile(rf"{_IDENTIFIER}(?:\.{_IDENTIFIER}|\[\d+\])*")
_TOKEN = re.compile(rf"\.?({_IDENTIFIER})|\[(\d+)\]")


class Field(NamedTuple):
    name: str


class Index(NamedTuple):
    position: int


Step = Union[Field, Index]


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _has_attributes(value: Any) -> bool:
    return isinstance(value, BaseModel) or hasattr(value, "__dict__")


def _read(container: Any, step: Step) -> Any:
    if container is None:
        return None

    if isinstance(step, Index):
        if not _is_sequence(container) or step.position >= len(container):
            return None

        return container[step.position]

    if isinstance(container, Mapping):
        return container.get(step.name)

    if not _has_attributes(container):
        return None

    return getattr(container, step.name, None)


def _write(container: Any, step: Step, value: Any) -> None:
    if isinstance(step, Index):
        if step.position == len(container):
            container.append(value)
        else:
            container[step.position] = value
    elif isinstance(container, MutableMapping):
        container[step.name] = value
    else:
        setattr(container, step.name, value)


def _assign(container: Any, step: Step, value: Any) -> Any:
    if isinstance(container, tuple):
        items = list(container)
        _write(items, step, value)

        return tuple(items)

    clone = copy.copy(container)
    _write(clone, step, value)

    return clone


def render_path(steps: tuple[Step, ...]) -> str:
    parts = []

    for step in steps:
        if isinstance(step, Index):
            parts.append(f"[{step.position}]")
        elif parts:
            parts.append(f".{step.name}")
        else:
            parts.append(step.name)

    return "".join(parts)


class Selector:
    path: str
    steps: tuple[Step, ...]

    def __init__(self, path: str, steps: tuple[Step, ...]) -> None:
        self.path = path
        self.steps = steps

    def __repr__(self) -> str:
        return f"Selector({self.path!r})"

    @property
    def is_identity(self) -> bool:
        return not self.steps

    def get(self, state: Any) -> Any:
        value = state

        for step in self.steps:
            value = _read(value, step)

        return value

    def set(self, state: Any, value: Any) -> Any:
        """Write ``value`` in place and return the written value.

        The identity selector cannot mutate its caller's reference, so it only
        returns ``value`` for the caller to use as the new whole state.
        """
        if not self.steps:
            return value

        parent = state

        for step in self.steps[:-1]:
            parent = _read(parent, step)

        if parent is None:
            raise InvalidSelectorError(
                f"Selector {self.path!r} does not resolve against the state"
            )

        _write(parent, self.steps[-1], value)

        return value

    def update(self, state: Any, value: Any) -> Any:
        """Return a new root with ``value`` written at this path.

        Every container on the path is shallow-copied; everything off the path
        is shared with ``state``.
        """
        if not self.steps:
            return value

        return self._replace(state, 0, value)

    def _replace(self, container: Any, depth: int, value: Any) -> Any:
        if container is None:
            raise InvalidSelectorError(
                f"Selector {self.path!r} does not resolve against the state"
            )

        step = self.steps[depth]

        if depth + 1 < len(self.steps):
            value = self._replace(_read(container, step), depth + 1, value)

        return _assign(container, step, value)

    def resolves(self, state: Any) -> bool:
        if not self.steps:
            return True

        parent = state

        for step in self.steps[:-1]:
            parent = _read(parent, step)

        return _can_hold(parent, self.steps[-1])


def _can_hold(parent: Any, step: Step) -> bool:
    if parent is None:
        return False

    if isinstance(step, Index):
        return _is_sequence(parent) and step.position <= len(parent)

    if isinstance(parent, Mapping):
        return True

    return _has_attributes(parent) and hasattr(parent, step.name)


def _tokenize(path: str) -> tuple[Step, ...]:
    steps: list[Step] = []

    for match in _TOKEN.finditer(path):
        name, position = match.groups()

        if name is not None:
            steps.append(Field(name))
        else:
            steps.append(Index(int(position)))

    return tuple(steps)


def _strip_root(path: str, root: str) -> str:
    if path == root:
        return ""

    if path.startswith(root + "."):
        return path[len(root) + 1:]

    if path.startswith(root + "["):
        raise InvalidSelectorError(
            f"Selector {path!r} indexes the {root!r} root directly"
        )

    raise InvalidSelectorError(
        f"Selector {path!r} must start with {root!r}, e.g. '{root}.user.name'"
    )


def compile_selector(path: str, root: Optional[str] = None) -> Selector:
    if not isinstance(path, str):
        raise InvalidSelectorError(
            f"Selector must be a string, got {type(path).__name__}"
        )

    if root is not None and not isinstance(root, str):
        raise InvalidSelectorError(
            f"Selector root must be a string, got {type(root).__name__}"
        )

    return _compile(path, root)


@lru_cache(maxsize=None)
def _compile(path: str, root: Optional[str]) -> Selector:
    relative = path

    if root is not None and path:
        relative = _strip_root(path, root)

    if relative and not _GRAMMAR.fullmatch(relative):
        raise InvalidSelectorError(
            f"Selector {path!r} should use dot notation, e.g. 'user.cars[1].name'"
        )

    return Selector(path, _tokenize(relative))
