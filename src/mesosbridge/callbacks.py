"""
Callback tables -- one slot per event kind. Every slot is invoked as `slot(driver, payload, ...)`
where payload is the object given at driver construction, echoed back unchanged. Envelopes
passed to a slot are borrowed for the duration of the invocation only; copy out what you need.

A slot left as None means the event is dropped silently.

Only one callback runs at a time for a given driver, on the driver's own thread. Blocking in a
callback stalls both event delivery and commands issued from other threads.
"""

from dataclasses import dataclass, fields
from typing import Any, Callable, Optional

from typing_extensions import Self

Slot = Optional[Callable[..., None]]


def _bind_slots(cls: type, sink: Any) -> dict[str, Slot]:
    rv: dict[str, Slot] = {}
    for field in fields(cls):
        candidate = getattr(sink, field.name, None)
        rv[field.name] = candidate if callable(candidate) else None
    return rv


@dataclass(frozen=True)
class SchedulerCallbacks:
    # (driver, payload, framework_id, master_info)
    registered: Slot = None
    # (driver, payload, master_info)
    reregistered: Slot = None
    # (driver, payload, offers: list[Envelope], count: int)
    resource_offers: Slot = None
    # (driver, payload, status)
    status_update: Slot = None
    # (driver, payload)
    disconnected: Slot = None
    # (driver, payload, offer_id)
    offer_rescinded: Slot = None
    # (driver, payload, executor_id, slave_id, data)
    framework_message: Slot = None
    # (driver, payload, slave_id)
    slave_lost: Slot = None
    # (driver, payload, executor_id, slave_id, status: int)
    executor_lost: Slot = None
    # (driver, payload, message: Envelope) -- the driver is already aborted at this point
    error: Slot = None

    @classmethod
    def of(cls, sink: Any) -> Self:
        """Builds the table from an object exposing methods named after the slots"""
        return cls(**_bind_slots(cls, sink))


@dataclass(frozen=True)
class ExecutorCallbacks:
    # (driver, payload, executor_info, framework_info, slave_info)
    registered: Slot = None
    # (driver, payload, slave_info)
    reregistered: Slot = None
    # (driver, payload)
    disconnected: Slot = None
    # (driver, payload, task)
    launch_task: Slot = None
    # (driver, payload, task_id)
    kill_task: Slot = None
    # (driver, payload, data)
    framework_message: Slot = None
    # (driver, payload)
    shutdown: Slot = None
    # (driver, payload, message: Envelope) -- the driver is already aborted at this point
    error: Slot = None

    @classmethod
    def of(cls, sink: Any) -> Self:
        """Builds the table from an object exposing methods named after the slots"""
        return cls(**_bind_slots(cls, sink))
