from __future__ import annotations

from typing import Any, Callable


__all__ = (
    "Listener",
    "NotificationBus",
    "Unsubscribe",
)


Listener = Callable[[Any, str], None]
Unsubscribe = Callable[[], None]


class _Subscription:
    __slots__ = ("listener", "active")

    def __init__(self, listener: Listener) -> None:
        self.listener = listener
        self.active = True


class NotificationBus:
    _global: list[_Subscription]
    _named: dict[str, list[_Subscription]]

    def __init__(self) -> None:
        self._global = []
        self._named = {}

    def subscribe_global(self, listener: Listener) -> Unsubscribe:
        subscription = _Subscription(listener)
        self._global.append(subscription)

        def unsubscribe() -> None:
            if subscription.active:
                subscription.active = False
                self._global.remove(subscription)

        return unsubscribe

    def subscribe_named(self, action_name: str, listener: Listener) -> Unsubscribe:
        subscription = _Subscription(listener)
        self._named.setdefault(action_name, []).append(subscription)

        def unsubscribe() -> None:
            if not subscription.active:
                return

            subscription.active = False
            subscriptions = self._named[action_name]
            subscriptions.remove(subscription)

            if not subscriptions:
                del self._named[action_name]

        return unsubscribe

    def notify(self, state: Any, action_name: str) -> None:
        # Listeners removed during delivery are skipped.
        for subscription in list(self._global):
            if subscription.active:
                subscription.listener(state, action_name)

        for subscription in list(self._named.get(action_name, ())):
            if subscription.active:
                subscription.listener(state, action_name)
