"""
Tests the executor driver against a fake agent
"""

import time

import pytest

from helpers.transport import FakeRemote, fast_config, wait_until
from mesosbridge.callbacks import ExecutorCallbacks
from mesosbridge.config import DriverConfig
from mesosbridge.driver.executor import ExecutorDriver
from mesosbridge.low.core import LifecycleState, Status
from mesosbridge.msg import (
    ExecutorRegistered,
    ExecutorReregistered,
    ExecutorToFramework,
    FrameworkToExecutor,
    KillTask,
    RegisterExecutor,
    RunTask,
    ShutdownExecutor,
    StatusUpdate,
    StatusUpdateAcknowledgement,
)


class RecordingExecutor:
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def registered(self, driver, payload, executor_info, framework_info, slave_info):
        self.events.append(("registered", payload, bytes(executor_info), bytes(framework_info), bytes(slave_info)))

    def reregistered(self, driver, payload, slave_info):
        self.events.append(("reregistered", bytes(slave_info)))

    def disconnected(self, driver, payload):
        self.events.append(("disconnected",))

    def launch_task(self, driver, payload, task):
        self.events.append(("launch_task", bytes(task)))
        driver.send_status_update(b"TASK_RUNNING:" + bytes(task))

    def kill_task(self, driver, payload, task_id):
        self.events.append(("kill_task", bytes(task_id)))

    def framework_message(self, driver, payload, data):
        self.events.append(("framework_message", bytes(data)))

    def shutdown(self, driver, payload):
        self.events.append(("shutdown",))

    def error(self, driver, payload, message):
        self.events.append(("error", bytes(message)))


def make_driver(remote: FakeRemote, callbacks: ExecutorCallbacks, payload: object = None, config: DriverConfig = fast_config, **kwargs) -> ExecutorDriver:
    return ExecutorDriver(callbacks, payload, config=config, transport_factory=remote.factory, **kwargs)


def test_identity_from_environment(remote, executor_env):
    driver = make_driver(remote, ExecutorCallbacks())
    assert remote.remote is None
    driver.start()
    assert remote.wait_sent(RegisterExecutor) == [RegisterExecutor(framework_id=b"fw-1", executor_id=b"ex-1", reply_to="inproc://fake-driver")]
    assert remote.remote == "tcp://localhost:5051"
    driver.stop()
    assert driver.join() == Status.STOPPED
    driver.destroy()


def test_construction_failures(remote, monkeypatch):
    monkeypatch.delenv("MESOS_AGENT_ENDPOINT", raising=False)
    monkeypatch.delenv("MESOS_SLAVE_PID", raising=False)
    with pytest.raises(ValueError):
        make_driver(remote, ExecutorCallbacks())
    with pytest.raises(ValueError):
        make_driver(remote, ExecutorCallbacks(), agent="not an address", framework_id="fw", executor_id="ex")
    with pytest.raises(ValueError):
        make_driver(remote, ExecutorCallbacks(), agent="localhost:5051", framework_id="", executor_id="ex")
    with pytest.raises(ValueError):
        make_driver(remote, ExecutorCallbacks(), agent="localhost:5051", framework_id=b"fw", executor_id="ex")  # type: ignore
    with pytest.raises(ValueError):
        make_driver(remote, "not callbacks", agent="localhost:5051", framework_id="fw", executor_id="ex")  # type: ignore


def test_tasks_and_status_updates(remote):
    executor = RecordingExecutor()
    payload = {"executor": "mine"}
    driver = make_driver(remote, ExecutorCallbacks.of(executor), payload, agent="localhost:5051", framework_id="fw", executor_id="ex", config=fast_config.model_copy(update={"status_update_resend_sec": 60.0}))
    remote.push(
        ExecutorRegistered(executor_info=b"ei", framework_info=b"fi", slave_info=b"si"),
        RunTask(task=b"t1"),
        FrameworkToExecutor(framework_id=b"fw", executor_id=b"ex", slave_id=b"s1", data=b"ping"),
        KillTask(framework_id=b"fw", task_id=b"t1"),
    )
    driver.start()
    wait_until(lambda: len(executor.events) == 4)
    assert executor.events == [
        ("registered", payload, b"ei", b"fi", b"si"),
        ("launch_task", b"t1"),
        ("framework_message", b"ping"),
        ("kill_task", b"t1"),
    ]
    (update,) = remote.wait_sent(StatusUpdate)
    assert update.status == b"TASK_RUNNING:t1"
    assert len(update.uuid) == 16
    assert list(driver.inflight) == [update.uuid]

    assert driver.send_framework_message(b"pong") == Status.RUNNING
    assert remote.wait_sent(ExecutorToFramework) == [ExecutorToFramework(framework_id=b"fw", executor_id=b"ex", slave_id=b"", data=b"pong")]

    remote.push(StatusUpdateAcknowledgement(framework_id=b"fw", uuid=update.uuid))
    wait_until(lambda: not driver.inflight)
    driver.stop()
    driver.join()
    driver.destroy()


def test_unacknowledged_updates_are_resent(remote):
    driver = make_driver(remote, ExecutorCallbacks(), agent="localhost:5051", framework_id="fw", executor_id="ex")
    driver.start()
    wait_until(lambda: driver.state == LifecycleState.running)
    assert driver.send_status_update(b"TASK_FINISHED") == Status.RUNNING
    updates = remote.wait_sent(StatusUpdate, 3)
    assert len({u.uuid for u in updates}) == 1

    remote.push(StatusUpdateAcknowledgement(framework_id=b"fw", uuid=updates[0].uuid))
    wait_until(lambda: not driver.inflight)
    time.sleep(0.1)  # let the acknowledgement settle, no resend may be in progress afterwards
    count = len(remote.sent_of(StatusUpdate))
    time.sleep(0.3)
    assert len(remote.sent_of(StatusUpdate)) == count
    driver.stop()
    driver.join()
    driver.destroy()


def test_reregistration_resends_inflight(remote):
    config = fast_config.model_copy(update={"status_update_resend_sec": 60.0})
    executor = RecordingExecutor()
    driver = ExecutorDriver(ExecutorCallbacks.of(executor), None, "localhost:5051", "fw", "ex", config=config, transport_factory=remote.factory)
    driver.start()
    wait_until(lambda: driver.state == LifecycleState.running)
    driver.send_status_update(b"TASK_RUNNING")
    remote.wait_sent(StatusUpdate)
    remote.push(ExecutorReregistered(slave_info=b"restarted"))
    updates = remote.wait_sent(StatusUpdate, 2)
    assert updates[0] == updates[1]
    wait_until(lambda: executor.events == [("reregistered", b"restarted")])
    driver.abort()
    driver.join()
    driver.destroy()


def test_shutdown_aborts_unless_stopped(remote):
    executor = RecordingExecutor()
    driver = make_driver(remote, ExecutorCallbacks.of(executor), agent="localhost:5051", framework_id="fw", executor_id="ex")
    remote.push(ShutdownExecutor(), RunTask(task=b"too-late"))
    assert driver.run() == Status.ABORTED
    assert executor.events == [("shutdown",)]
    driver.destroy()

    def shutdown(driver, payload):
        driver.stop()

    remote = FakeRemote()
    driver = make_driver(remote, ExecutorCallbacks(shutdown=shutdown), agent="localhost:5051", framework_id="fw", executor_id="ex")
    remote.push(ShutdownExecutor())
    assert driver.run() == Status.STOPPED
    driver.destroy()


def test_commands_outside_active_states(remote):
    driver = make_driver(remote, ExecutorCallbacks(), agent="localhost:5051", framework_id="fw", executor_id="ex")
    assert driver.send_status_update(b"TASK_RUNNING") == Status.INVALID_STATE
    assert driver.send_framework_message(b"x") == Status.INVALID_STATE
    assert driver.inflight == {}
    driver.start()
    driver.abort()
    assert driver.send_status_update(b"TASK_RUNNING") == Status.INVALID_STATE
    assert driver.join() == Status.ABORTED
    assert remote.sent_of(StatusUpdate) == []
    driver.destroy()
