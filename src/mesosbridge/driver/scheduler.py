"""
Scheduler side driver: registers a framework with the master, delivers offers and status
updates to the callbacks, and forwards the scheduler's commands to the master
"""

import logging
from typing import Any, Iterable

from mesosbridge.callbacks import SchedulerCallbacks
from mesosbridge.config import DriverConfig
from mesosbridge.driver.base import Driver
from mesosbridge.envelope import Envelope, borrowed, copy_in, copy_in_all
from mesosbridge.low.core import Address, Status, active_states
from mesosbridge.msg import (
    DeclineOffer,
    Disconnected,
    Error,
    ExecutorLost,
    ExecutorToFramework,
    FrameworkRegistered,
    FrameworkReregistered,
    FrameworkToExecutor,
    KillTask,
    LaunchTasks,
    Message,
    RegisterFramework,
    RequestResources,
    RescindResourceOffer,
    ResourceOffers,
    ReviveOffers,
    SlaveLost,
    StatusUpdate,
    StatusUpdateAcknowledgement,
    UnregisterFramework,
)
from mesosbridge.transport import TransportFactory, parse_pid

logger = logging.getLogger(__name__)

Bytes = Envelope | bytes | bytearray | memoryview


class SchedulerDriver(Driver):
    kind = "scheduler"

    def __init__(
        self,
        callbacks: SchedulerCallbacks,
        payload: Any,
        framework: Bytes,
        master: str,
        config: DriverConfig | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        """Raises ValueError on malformed input. `framework` is a serialized FrameworkInfo,
        `master` the pid of the master, eg `master@host:5050`"""
        if not isinstance(callbacks, SchedulerCallbacks):
            raise ValueError(f"expected SchedulerCallbacks, gotten {type(callbacks)}")
        try:
            framework_data = copy_in(framework)
        except TypeError as e:
            raise ValueError(f"malformed framework info: {e}") from e
        if not framework_data:
            raise ValueError("framework info must not be empty")
        super().__init__(callbacks, payload, parse_pid(master), config, transport_factory)
        self.framework = framework_data
        self.framework_id = b""  # assigned by the master on registration
        logger.debug(f"constructed scheduler driver {self.handle_id} for {master}")

    def _registration(self, reply_to: Address) -> Message:
        return RegisterFramework(framework=self.framework, reply_to=reply_to)

    def stop(self, failover: bool = False) -> Status:
        """With failover the master keeps the framework around for a scheduler to re-register,
        without it the framework is torn down. Before registration there is nothing to tear down"""
        with self._lock:
            farewell = None if failover or not self.framework_id else UnregisterFramework(framework_id=self.framework_id)
            return self._stop(farewell)

    ## commands

    def launch_tasks(self, offer_ids: Iterable[Bytes], tasks: Iterable[Bytes], filters: Bytes | None = None) -> Status:
        offer_ids_data = copy_in_all(offer_ids)
        tasks_data = copy_in_all(tasks)
        filters_data = copy_in(filters) if filters is not None else b""
        return self._command(
            "launch_tasks",
            lambda: LaunchTasks(framework_id=self.framework_id, offer_ids=offer_ids_data, tasks=tasks_data, filters=filters_data),
        )

    def decline_offer(self, offer_id: Bytes, filters: Bytes | None = None) -> Status:
        offer_id_data = copy_in(offer_id)
        filters_data = copy_in(filters) if filters is not None else b""
        return self._command(
            "decline_offer",
            lambda: DeclineOffer(framework_id=self.framework_id, offer_id=offer_id_data, filters=filters_data),
        )

    def kill_task(self, task_id: Bytes) -> Status:
        task_id_data = copy_in(task_id)
        return self._command("kill_task", lambda: KillTask(framework_id=self.framework_id, task_id=task_id_data))

    def revive_offers(self) -> Status:
        return self._command("revive_offers", lambda: ReviveOffers(framework_id=self.framework_id))

    def request_resources(self, requests: Iterable[Bytes]) -> Status:
        requests_data = copy_in_all(requests)
        return self._command(
            "request_resources",
            lambda: RequestResources(framework_id=self.framework_id, requests=requests_data),
        )

    def send_framework_message(self, executor_id: Bytes, slave_id: Bytes, data: Bytes) -> Status:
        """Best effort, there is no delivery guarantee"""
        executor_id_data = copy_in(executor_id)
        slave_id_data = copy_in(slave_id)
        message_data = copy_in(data)
        return self._command(
            "send_framework_message",
            lambda: FrameworkToExecutor(
                framework_id=self.framework_id,
                executor_id=executor_id_data,
                slave_id=slave_id_data,
                data=message_data,
            ),
        )

    ## dispatch

    def _handle(self, m: Message) -> None:
        if isinstance(m, FrameworkRegistered):
            self.framework_id = m.framework_id
            with borrowed(m.framework_id, m.master_info) as (framework_id, master_info):
                self._invoke("registered", framework_id, master_info)
        elif isinstance(m, FrameworkReregistered):
            with borrowed(m.master_info) as (master_info,):
                self._invoke("reregistered", master_info)
        elif isinstance(m, ResourceOffers):
            with borrowed(*m.offers) as offers:
                self._invoke("resource_offers", offers, len(offers))
        elif isinstance(m, RescindResourceOffer):
            with borrowed(m.offer_id) as (offer_id,):
                self._invoke("offer_rescinded", offer_id)
        elif isinstance(m, StatusUpdate):
            with borrowed(m.status) as (status,):
                self._invoke("status_update", status)
            # NOTE implicit acknowledgement, only once the callback returned and if it did not abort us
            if m.uuid and self._state in active_states:
                self._send(StatusUpdateAcknowledgement(framework_id=self.framework_id, uuid=m.uuid))
        elif isinstance(m, ExecutorToFramework):
            with borrowed(m.executor_id, m.slave_id, m.data) as (executor_id, slave_id, data):
                self._invoke("framework_message", executor_id, slave_id, data)
        elif isinstance(m, SlaveLost):
            with borrowed(m.slave_id) as (slave_id,):
                self._invoke("slave_lost", slave_id)
        elif isinstance(m, ExecutorLost):
            with borrowed(m.executor_id, m.slave_id) as (executor_id, slave_id):
                self._invoke("executor_lost", executor_id, slave_id, m.status)
        elif isinstance(m, Disconnected):
            self._invoke("disconnected")
        elif isinstance(m, Error):
            self._fail(m.message)
        else:
            logger.warning(f"scheduler driver {self.handle_id} ignoring unexpected {type(m).__name__}")
