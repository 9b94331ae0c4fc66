# clinic_core/common/events.py
from collections import defaultdict
from typing import Callable, Dict, List, Any

from django.db import transaction

Handler = Callable[[Dict[str, Any]], None]

_registry: Dict[str, List[Handler]] = defaultdict(list)


def subscribe(event_name: str):
    """
    Decorator to register an event handler.
    Usage:
        @subscribe("visit.status_changed")
        def handler(payload): ...
    """
    def _decorator(fn: Handler) -> Handler:
        _registry[event_name].append(fn)
        return fn
    return _decorator


def unsubscribe(event_name: str, fn: Handler) -> None:
    handlers = _registry.get(event_name, [])
    if fn in handlers:
        handlers.remove(fn)


def publish(event_name: str, payload: Dict[str, Any]) -> None:
    """
    Publish an event to in-process subscribers.
    Keep payloads ID-based to avoid cross-app imports.
    """
    for handler in list(_registry.get(event_name, [])):
        handler(payload)


def publish_on_commit(event_name: str, payload: Dict[str, Any]) -> None:
    """
    Fire-and-forget: subscribers only see the event once the workflow
    transaction has committed. Nothing is published for rolled-back work.
    """
    transaction.on_commit(lambda: publish(event_name, payload))
