"""Tests for selector-scoped middleware."""

import pytest

from slicestore import (
    InvalidArgumentsError,
    InvalidSelectorError,
    MiddlewareContext,
    ReservedKeyError
)


def test_middleware_overrides_reduced_slice(counter_store, recorder) -> None:
    counter_store.middleware("DEC", "counter", lambda context: 0)
    counter_store.subscribe("DEC", recorder)

    counter_store.dispatch("INC")
    counter_store.dispatch("INC")
    counter_store.dispatch("INC")
    counter_store.dispatch("DEC")

    assert counter_store.get_state()["counter"] == 0
    assert recorder.calls == [({"counter": 0}, "DEC")]


def test_middleware_receives_post_reduction_context(counter_store) -> None:
    contexts = []

    def inspect(context: MiddlewareContext):
        contexts.append(context)
        return context.state

    counter_store.middleware("DEC", "counter", inspect)

    counter_store.dispatch("INC")
    counter_store.dispatch("INC")
    counter_store.dispatch("INC")
    counter_store.dispatch("DEC", 1)

    assert len(contexts) == 1

    context = contexts[0]

    assert context.action_name == "DEC"
    assert context.state == 2
    assert context.global_state == {"counter": 2}
    assert context.payload == (1,)


def test_later_registration_replaces_earlier(counter_store) -> None:
    counter_store.middleware("INC", "counter", lambda context: 100)
    counter_store.middleware("INC", "counter", lambda context: -100)

    counter_store.dispatch("INC")

    assert counter_store.get_state()["counter"] == -100


def test_middleware_runs_for_action_without_reducer(counter_store) -> None:
    counter_store.middleware("CHARGE", "counter", lambda context: context.state + 100)

    counter_store.dispatch("CHARGE")

    assert counter_store.get_state()["counter"] == 100


def test_middleware_on_extended_state(nested_store, recorder) -> None:
    nested_store.extend("extended.deep.value", {
        "state": "plug",
        "actions": {"LOLLIPOP": lambda value: "battery" if value == "plug" else "plug"},
    })
    nested_store.middleware("LOLLIPOP", "extended.deep.value", lambda context: "lollipop")
    nested_store.subscribe("LOLLIPOP", recorder)

    nested_store.dispatch("LOLLIPOP")

    state, _ = recorder.calls[0]

    assert state["extended"]["deep"]["value"] == "lollipop"


def test_middleware_failure_aborts_commit(counter_store, recorder) -> None:
    def refuse(context):
        raise PermissionError("no")

    counter_store.middleware("INC", "counter", refuse)
    counter_store.subscribe(recorder)

    with pytest.raises(PermissionError):
        counter_store.dispatch("INC")

    assert counter_store.get_state()["counter"] == 0
    assert recorder.calls == []


def test_middleware_runs_once_per_batched_occurrence(counter_store, recorder) -> None:
    calls = []

    def count(context):
        calls.append(context.state)
        return context.state

    counter_store.middleware("INC", "counter", count)
    counter_store.subscribe("INC", recorder)

    counter_store.dispatch.batch(("INC",), ("INC",), ("INC",))

    assert calls == [1, 2, 3]
    assert len(recorder.calls) == 1


@pytest.mark.parametrize(
    "args",
    [(1, "counter", lambda c: c), ("INC", 1, lambda c: c), ("INC", "counter", None)],
)
def test_middleware_rejects_malformed_arguments(counter_store, args) -> None:
    with pytest.raises(InvalidArgumentsError):
        counter_store.middleware(*args)


def test_middleware_rejects_internal_actions(counter_store) -> None:
    with pytest.raises(ReservedKeyError):
        counter_store.middleware("@@extend", "counter", lambda c: c)


def test_middleware_rejects_unresolvable_selector(counter_store) -> None:
    with pytest.raises(InvalidSelectorError):
        counter_store.middleware("INC", "missing.value", lambda c: c)


def test_middleware_rejects_path_through_scalar(counter_store) -> None:
    with pytest.raises(InvalidSelectorError):
        counter_store.middleware("INC", "counter.value", lambda c: 1)

    counter_store.dispatch("INC")

    assert counter_store.get_state()["counter"] == 1
