"""Tests for state derived from other stores through links."""

import pytest

from slicestore import (
    LINK_ACTION,
    CyclicLinkError,
    InvalidArgumentsError,
    Store,
    create_store,
    link
)


@pytest.fixture
def label_store(counter_store):
    return create_store({
        "state": {
            "title": "counter",
            "label": link(counter_store, lambda a: f"n={a['counter']}"),
        },
        "actions": {},
    })


def test_link_is_computed_at_construction(label_store) -> None:
    assert label_store.get_state() == {"title": "counter", "label": "n=0"}


def test_link_follows_source_commits(counter_store, label_store) -> None:
    counter_store.dispatch("INC")

    assert label_store.get_state()["label"] == "n=1"


def test_link_notifies_target_with_synthetic_action(counter_store, label_store, recorder) -> None:
    label_store.subscribe(recorder)
    named = []
    label_store.subscribe(LINK_ACTION, lambda state, name: named.append(state["label"]))

    counter_store.dispatch("INC")
    counter_store.dispatch.batch(("INC",), ("DEC",), ("INC",))

    assert [name for _, name in recorder.calls] == ["link", "link", "link"]
    assert named == ["n=1", "n=2", "n=2"]


def test_link_bypasses_target_middleware(counter_store, label_store) -> None:
    label_store.middleware("link", "label", lambda context: "intercepted")

    counter_store.dispatch("INC")

    assert label_store.get_state()["label"] == "n=1"


def test_link_with_several_sources(counter_store) -> None:
    other = create_store({"state": {"counter": 10}, "actions": {"SET": lambda s, n: {"counter": n}}})
    total = create_store({
        "state": {"stats": [link(counter_store, other, lambda a, b: a["counter"] + b["counter"])]},
        "actions": {},
    })

    assert total.get_state("stats[0]") == 10

    counter_store.dispatch("INC", 5)
    other.dispatch("SET", 1)

    assert total.get_state("stats[0]") == 6


def test_link_at_state_root(counter_store) -> None:
    mirror = create_store({
        "state": link(counter_store, lambda a: dict(a)),
        "actions": {},
    })

    counter_store.dispatch("INC")

    assert mirror.get_state() == {"counter": 1}


def test_link_write_replaces_top_level_reference(counter_store, label_store) -> None:
    before = label_store.get_state()

    counter_store.dispatch("INC")

    assert label_store.get_state() is not before
    assert before["label"] == "n=0"


def test_upstream_is_transitive(counter_store, label_store) -> None:
    shout = create_store({
        "state": {"text": link(label_store, lambda b: b["label"].upper())},
        "actions": {},
    })

    assert shout.upstream == {counter_store, label_store}

    counter_store.dispatch("INC")

    assert shout.get_state()["text"] == "N=1"


def test_reentrant_recompute_is_rejected(counter_store) -> None:
    def combine(a):
        if a["counter"] == 1:
            counter_store.dispatch("INC")

        return a["counter"]

    create_store({"state": {"value": link(counter_store, combine)}, "actions": {}})

    with pytest.raises(CyclicLinkError):
        counter_store.dispatch("INC")


@pytest.mark.parametrize("args", [(), (lambda a: a,), (3, lambda a: a)])
def test_link_rejects_malformed_arguments(args) -> None:
    with pytest.raises(InvalidArgumentsError):
        link(*args)


def test_link_is_available_on_store() -> None:
    assert Store.link is link
