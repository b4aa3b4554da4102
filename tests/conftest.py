"""Shared test fixtures."""

import pytest

from slicestore import create_store


def increment(state, amount=1):
    return {**state, "counter": state["counter"] + amount}


def decrement(state, amount=1):
    return {**state, "counter": state["counter"] - amount}


@pytest.fixture
def counter_store():
    """Store with a counter and INC/DEC actions."""
    return create_store({
        "state": {"counter": 0},
        "actions": {
            "INC": increment,
            "DEC": decrement,
        },
    })


@pytest.fixture
def nested_store():
    """Store with nested state and no actions of its own."""
    return create_store({
        "state": {
            "counter": 0,
            "extended": {
                "deep": {
                    "is_extended": True,
                },
            },
        },
        "actions": {},
    })


@pytest.fixture
def recorder():
    """Listener that records every (state, action_name) call."""
    calls = []

    def listener(state, action_name):
        calls.append((state, action_name))

    listener.calls = calls

    return listener
