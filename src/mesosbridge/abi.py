"""
Flat, function-per-call surface over the drivers, for callers which hold on to a handle pair
rather than to a driver object -- eg bindings generated for other runtimes.

`*_init` never raises on malformed input, it returns the null pair instead. Every other
function returns an int status code, except `*_destroy`. Sequences (offer ids, tasks,
requests) are passed packed into a single envelope, see `envelope.pack_sequence`. A malformed
sequence is rejected with INVALID_STATE, like a call in the wrong state, and nothing is sent.
"""

import logging
from dataclasses import dataclass
from typing import Any

from mesosbridge.callbacks import ExecutorCallbacks, SchedulerCallbacks
from mesosbridge.config import DriverConfig
from mesosbridge.driver.executor import ExecutorDriver
from mesosbridge.driver.scheduler import SchedulerDriver
from mesosbridge.envelope import Envelope, unpack_sequence
from mesosbridge.errors import ContractViolation
from mesosbridge.low.core import Status
from mesosbridge.transport import TransportFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerPtrPair:
    scheduler: SchedulerCallbacks | None
    driver: SchedulerDriver | None

    @property
    def is_null(self) -> bool:
        return self.driver is None


@dataclass(frozen=True)
class ExecutorPtrPair:
    executor: ExecutorCallbacks | None
    driver: ExecutorDriver | None

    @property
    def is_null(self) -> bool:
        return self.driver is None


NULL_SCHEDULER_PAIR = SchedulerPtrPair(scheduler=None, driver=None)
NULL_EXECUTOR_PAIR = ExecutorPtrPair(executor=None, driver=None)


def _driver(pair: SchedulerPtrPair | ExecutorPtrPair) -> Any:
    if pair.driver is None:
        raise ContractViolation("call on the null handle pair")
    return pair.driver


## Scheduler driver calls

def scheduler_init(
    callbacks: SchedulerCallbacks,
    payload: Any,
    framework: Envelope,
    master: str,
    config: DriverConfig | None = None,
    transport_factory: TransportFactory | None = None,
) -> SchedulerPtrPair:
    try:
        driver = SchedulerDriver(callbacks, payload, framework, master, config, transport_factory)
    except ValueError:
        logger.exception(f"failed to construct scheduler driver for {master!r}")
        return NULL_SCHEDULER_PAIR
    return SchedulerPtrPair(scheduler=callbacks, driver=driver)

def scheduler_start(pair: SchedulerPtrPair) -> int:
    return _driver(pair).start()

def scheduler_stop(pair: SchedulerPtrPair, failover: bool) -> int:
    return _driver(pair).stop(bool(failover))

def scheduler_abort(pair: SchedulerPtrPair) -> int:
    return _driver(pair).abort()

def scheduler_join(pair: SchedulerPtrPair) -> int:
    return _driver(pair).join()

def scheduler_run(pair: SchedulerPtrPair) -> int:
    return _driver(pair).run()

def _unpacked(driver: SchedulerDriver, op: str, *packed: Envelope) -> list[list[bytes]] | None:
    """None if any of the sequences is malformed, which the caller reports as INVALID_STATE"""
    try:
        return [unpack_sequence(p) for p in packed]
    except ValueError:
        driver.status  # raises on a destroyed driver, as the command itself would
        logger.exception(f"malformed sequence passed to {op} of {driver.handle_id}")
        return None

def scheduler_launch_tasks(pair: SchedulerPtrPair, offer_ids: Envelope, tasks: Envelope, filters: Envelope) -> int:
    """`offer_ids` and `tasks` are packed sequences, an absent `filters` means no filters"""
    driver = _driver(pair)
    unpacked = _unpacked(driver, "launch_tasks", offer_ids, tasks)
    if unpacked is None:
        return Status.INVALID_STATE
    return driver.launch_tasks(unpacked[0], unpacked[1], filters)

def scheduler_request_resources(pair: SchedulerPtrPair, requests: Envelope) -> int:
    driver = _driver(pair)
    unpacked = _unpacked(driver, "request_resources", requests)
    if unpacked is None:
        return Status.INVALID_STATE
    return driver.request_resources(unpacked[0])

def scheduler_decline_offer(pair: SchedulerPtrPair, offer_id: Envelope, filters: Envelope) -> int:
    return _driver(pair).decline_offer(offer_id, filters)

def scheduler_kill_task(pair: SchedulerPtrPair, task_id: Envelope) -> int:
    return _driver(pair).kill_task(task_id)

def scheduler_revive_offers(pair: SchedulerPtrPair) -> int:
    return _driver(pair).revive_offers()

def scheduler_send_framework_message(pair: SchedulerPtrPair, executor_id: Envelope, slave_id: Envelope, data: Envelope) -> int:
    return _driver(pair).send_framework_message(executor_id, slave_id, data)

def scheduler_destroy(pair: SchedulerPtrPair) -> None:
    _driver(pair).destroy()


## Executor driver calls

def executor_init(
    callbacks: ExecutorCallbacks,
    payload: Any,
    agent: str | None = None,
    framework_id: str | None = None,
    executor_id: str | None = None,
    config: DriverConfig | None = None,
    transport_factory: TransportFactory | None = None,
) -> ExecutorPtrPair:
    """Identity not given explicitly is read from the environment set up by the agent"""
    try:
        driver = ExecutorDriver(callbacks, payload, agent, framework_id, executor_id, config, transport_factory)
    except ValueError:
        logger.exception("failed to construct executor driver")
        return NULL_EXECUTOR_PAIR
    return ExecutorPtrPair(executor=callbacks, driver=driver)

def executor_start(pair: ExecutorPtrPair) -> int:
    return _driver(pair).start()

def executor_stop(pair: ExecutorPtrPair) -> int:
    return _driver(pair).stop()

def executor_abort(pair: ExecutorPtrPair) -> int:
    return _driver(pair).abort()

def executor_join(pair: ExecutorPtrPair) -> int:
    return _driver(pair).join()

def executor_run(pair: ExecutorPtrPair) -> int:
    return _driver(pair).run()

def executor_send_status_update(pair: ExecutorPtrPair, status: Envelope) -> int:
    return _driver(pair).send_status_update(status)

def executor_send_framework_message(pair: ExecutorPtrPair, data: Envelope) -> int:
    return _driver(pair).send_framework_message(data)

def executor_destroy(pair: ExecutorPtrPair) -> None:
    _driver(pair).destroy()
