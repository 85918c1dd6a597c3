"""Per-instance synchronous event dispatch with a closed channel vocabulary."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Callable, ClassVar

import structlog

from microflow.core.constants import StateEvent, StepEvent, WorkflowEvent
from microflow.core.exceptions import EventError

logger = structlog.get_logger(__name__)

EventHandler = Callable[[Any], Any]


@dataclass(eq=False)
class _Subscription:
    handler: EventHandler
    once: bool = False


class EventDispatcher:
    """Synchronous, in-process publish/subscribe bus.

    Channels are fixed when the dispatcher is created; subscribing to or
    emitting on any other name raises :class:`~microflow.core.exceptions.EventError`.
    Handlers receive the emitted payload and run in registration order.

    A handler that returns ``False`` suppresses delivery to the handlers after
    it and makes :meth:`emit` return ``False``. Exceptions raised by a handler
    are logged and do not stop delivery to the others.
    """

    _clone_by_reference: ClassVar[bool] = True

    def __init__(self, event_names: Iterable[str]) -> None:
        self.event_names: tuple[str, ...] = tuple(str(name) for name in event_names)
        self._channels: dict[str, list[_Subscription]] = {
            name: [] for name in self.event_names
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(channels={len(self._channels)})"

    def on(self, event_name: str, handler: EventHandler) -> EventDispatcher:
        """Register a durable *handler* for *event_name*. Returns self for chaining."""
        self._channel(event_name).append(_Subscription(handler))
        return self

    def once(self, event_name: str, handler: EventHandler) -> EventDispatcher:
        """Register a *handler* that is removed after its first delivery."""
        self._channel(event_name).append(_Subscription(handler, once=True))
        return self

    def off(self, event_name: str, handler: EventHandler) -> EventDispatcher:
        """Deregister *handler*; unknown handlers are ignored."""
        subscriptions = self._channel(event_name)
        for index, subscription in enumerate(subscriptions):
            if subscription.handler == handler:
                del subscriptions[index]
                break
        return self

    def remove_listener(self, event_name: str, handler: EventHandler) -> EventDispatcher:
        return self.off(event_name, handler)

    def listener_count(self, event_name: str) -> int:
        return len(self._channel(event_name))

    def emit(self, event_name: str, payload: Any = None) -> bool:
        """Deliver *payload* to every handler of *event_name*.

        Returns:
            ``True`` unless a handler suppressed delivery by returning ``False``.
        """
        subscriptions = self._channel(event_name)
        for subscription in list(subscriptions):
            if subscription.once:
                subscriptions.remove(subscription)
            try:
                outcome = subscription.handler(payload)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "event handler error",
                    event_name=event_name,
                    handler=getattr(subscription.handler, "__name__", repr(subscription.handler)),
                    error=str(exc),
                )
                continue
            if outcome is False:
                return False
        return True

    def _channel(self, event_name: str) -> list[_Subscription]:
        try:
            return self._channels[str(event_name)]
        except KeyError:
            raise EventError(
                f"Unknown event name: {event_name!r}",
                details={"event_name": str(event_name)},
            ) from None


class StepEvents(EventDispatcher):
    """Dispatcher pre-registered with every :class:`StepEvent` channel."""

    def __init__(self) -> None:
        super().__init__(StepEvent)


class WorkflowEvents(EventDispatcher):
    """Dispatcher pre-registered with every :class:`WorkflowEvent` channel."""

    def __init__(self) -> None:
        super().__init__(WorkflowEvent)


class StateEvents(EventDispatcher):
    """Dispatcher pre-registered with every :class:`StateEvent` channel."""

    def __init__(self) -> None:
        super().__init__(StateEvent)
