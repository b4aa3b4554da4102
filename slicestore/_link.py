from __future__ import annotations

import logging

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Iterator

from pydantic import BaseModel

from ._errors import CyclicLinkError, InvalidArgumentsError, InvalidSelectorError
from ._selector import Field, Index, Selector, Step, render_path

if TYPE_CHECKING:
    from ._store import Store


__all__ = (
    "BoundLink",
    "Link",

    "find_links",
    "link"
)


logger = logging.getLogger(__name__)


Combinator = Callable[..., Any]


class Link:
    """Marker for a state value derived from other stores.

    Placed anywhere in the initial state of a new store, it is replaced by
    ``combine(*(source.get_state() for source in sources))`` and recomputed
    whenever one of the sources commits.
    """

    sources: tuple[Store, ...]
    combine: Combinator

    def __init__(self, sources: tuple[Store, ...], combine: Combinator) -> None:
        self.sources = sources
        self.combine = combine

    def __repr__(self) -> str:
        return f"Link(sources={len(self.sources)}, combine={self.combine!r})"

    def compute(self) -> Any:
        return self.combine(*(source.get_state() for source in self.sources))


def link(*args: Any) -> Link:
    *sources, combine = args or (None,)

    if not sources or not callable(combine):
        raise InvalidArgumentsError(
            "Incorrect link arguments. Expected: link(*stores, combine)"
        )

    for source in sources:
        if not hasattr(source, "subscribe") or not hasattr(source, "get_state"):
            raise InvalidArgumentsError(f"Link source {source!r} is not a store")

    return Link(tuple(sources), combine)


def find_links(state: Any) -> Iterator[tuple[tuple[Step, ...], Link]]:
    yield from _walk(state, ())


def _walk(value: Any, steps: tuple[Step, ...]) -> Iterator[tuple[tuple[Step, ...], Link]]:
    if isinstance(value, Link):
        yield steps, value
    elif isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                if _contains_link(item):
                    raise InvalidSelectorError(
                        f"Link under non-string key {key!r} cannot be addressed"
                    )

                continue

            yield from _walk(item, steps + (Field(key),))
    elif isinstance(value, (list, tuple)):
        for position, item in enumerate(value):
            yield from _walk(item, steps + (Index(position),))
    elif isinstance(value, BaseModel):
        for name in type(value).model_fields:
            yield from _walk(getattr(value, name), steps + (Field(name),))


def _contains_link(value: Any) -> bool:
    return next(_walk(value, ()), None) is not None


class BoundLink:
    target: Store
    selector: Selector
    marker: Link

    def __init__(self, target: Store, steps: tuple[Step, ...], marker: Link) -> None:
        self.target = target
        self.selector = Selector(render_path(steps), steps)
        self.marker = marker

        self._recomputing = False

    def attach(self) -> None:
        for source in self.marker.sources:
            if source is self.target or self.target in getattr(source, "upstream", ()):
                raise CyclicLinkError(
                    f"Link at {self.selector.path!r} depends on its own store"
                )

        self.target._write_link(self.selector, self._recompute(), notify=False)

        for source in self.marker.sources:
            source.subscribe(self._on_source_commit)

    def _recompute(self) -> Any:
        if self._recomputing:
            raise CyclicLinkError(
                f"Link at {self.selector.path!r} was re-entered while recomputing"
            )

        self._recomputing = True

        try:
            return self.marker.compute()
        finally:
            self._recomputing = False

    def _on_source_commit(self, state: Any, action_name: str) -> None:
        logger.debug(
            "Recomputing link %r after %r",
            self.selector.path,
            action_name
        )

        self.target._write_link(self.selector, self._recompute(), notify=True)
