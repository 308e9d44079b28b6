"""
Executor side driver: registers with the agent which launched us, delivers tasks to the
callbacks, and makes sure status updates reach the scheduler
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any

from mesosbridge.callbacks import ExecutorCallbacks
from mesosbridge.config import DriverConfig, ExecutorEnvironment
from mesosbridge.driver.base import Driver
from mesosbridge.envelope import Envelope, borrowed, copy_in
from mesosbridge.low.core import Address, Status, active_states
from mesosbridge.msg import (
    Disconnected,
    Error,
    ExecutorRegistered,
    ExecutorReregistered,
    ExecutorToFramework,
    FrameworkToExecutor,
    KillTask,
    Message,
    RegisterExecutor,
    RunTask,
    ShutdownExecutor,
    StatusUpdate,
    StatusUpdateAcknowledgement,
)
from mesosbridge.transport import TransportFactory, parse_pid

logger = logging.getLogger(__name__)

Bytes = Envelope | bytes | bytearray | memoryview


@dataclass
class _InFlightRecord:
    update: StatusUpdate
    at: int  # monotonic ns of the last send


class ExecutorDriver(Driver):
    kind = "executor"

    def __init__(
        self,
        callbacks: ExecutorCallbacks,
        payload: Any,
        agent: str | None = None,
        framework_id: str | None = None,
        executor_id: str | None = None,
        config: DriverConfig | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        """Raises ValueError on malformed input. Identity not given explicitly is taken from the
        environment the agent launched us with"""
        if not isinstance(callbacks, ExecutorCallbacks):
            raise ValueError(f"expected ExecutorCallbacks, gotten {type(callbacks)}")
        if agent is None or framework_id is None or executor_id is None:
            environment = ExecutorEnvironment.from_env()
            agent = agent if agent is not None else environment.agent_endpoint
            framework_id = framework_id if framework_id is not None else environment.framework_id
            executor_id = executor_id if executor_id is not None else environment.executor_id
        if not isinstance(framework_id, str) or not isinstance(executor_id, str):
            raise ValueError(f"expected str ids, gotten {type(framework_id)} and {type(executor_id)}")
        if not framework_id or not executor_id:
            raise ValueError("framework and executor id must not be empty")
        super().__init__(callbacks, payload, parse_pid(agent), config, transport_factory)
        self.framework_id = framework_id.encode()
        self.executor_id = executor_id.encode()
        self.inflight: dict[bytes, _InFlightRecord] = {}
        logger.debug(f"constructed executor driver {self.handle_id} for {agent}")

    def _registration(self, reply_to: Address) -> Message:
        return RegisterExecutor(framework_id=self.framework_id, executor_id=self.executor_id, reply_to=reply_to)

    def stop(self) -> Status:
        return self._stop(None)

    ## commands

    def send_status_update(self, status: Bytes) -> Status:
        """Resent until the agent acknowledges it, or until the driver stops"""
        status_data = copy_in(status)

        def update() -> StatusUpdate:
            m = StatusUpdate(status=status_data, uuid=uuid.uuid4().bytes)
            self.inflight[m.uuid] = _InFlightRecord(update=m, at=time.monotonic_ns())
            return m

        return self._command("send_status_update", update)

    def send_framework_message(self, data: Bytes) -> Status:
        """Best effort, there is no delivery guarantee"""
        message_data = copy_in(data)
        return self._command(
            "send_framework_message",
            lambda: ExecutorToFramework(
                framework_id=self.framework_id,
                executor_id=self.executor_id,
                slave_id=b"",  # filled in by the agent
                data=message_data,
            ),
        )

    ## dispatch

    def _tick(self) -> None:
        watermark = time.monotonic_ns() - int(self.config.status_update_resend_sec * 1_000_000_000)
        for key, record in self.inflight.items():
            if record.at < watermark:
                logger.warning(f"resending status update {key.hex()} of {self.handle_id}, not acknowledged for {(time.monotonic_ns() - record.at) / 1e9:.1f}s")
                self._send(record.update)
                record.at = time.monotonic_ns()

    def _handle(self, m: Message) -> None:
        if isinstance(m, ExecutorRegistered):
            with borrowed(m.executor_info, m.framework_info, m.slave_info) as (executor_info, framework_info, slave_info):
                self._invoke("registered", executor_info, framework_info, slave_info)
        elif isinstance(m, ExecutorReregistered):
            # NOTE the restarted agent lost whatever it had not acknowledged yet
            for record in self.inflight.values():
                self._send(record.update)
                record.at = time.monotonic_ns()
            with borrowed(m.slave_info) as (slave_info,):
                self._invoke("reregistered", slave_info)
        elif isinstance(m, RunTask):
            with borrowed(m.task) as (task,):
                self._invoke("launch_task", task)
        elif isinstance(m, KillTask):
            with borrowed(m.task_id) as (task_id,):
                self._invoke("kill_task", task_id)
        elif isinstance(m, FrameworkToExecutor):
            with borrowed(m.data) as (data,):
                self._invoke("framework_message", data)
        elif isinstance(m, StatusUpdateAcknowledgement):
            if self.inflight.pop(m.uuid, None) is None:
                logger.debug(f"duplicate or unknown acknowledgement {m.uuid.hex()} at {self.handle_id}")
        elif isinstance(m, ShutdownExecutor):
            self._invoke("shutdown")
            # NOTE the executor is expected to stop the driver itself, if it did not we refuse any further messages
            if self._state in active_states:
                self.abort()
        elif isinstance(m, Disconnected):
            self._invoke("disconnected")
        elif isinstance(m, Error):
            self._fail(m.message)
        else:
            logger.warning(f"executor driver {self.handle_id} ignoring unexpected {type(m).__name__}")
