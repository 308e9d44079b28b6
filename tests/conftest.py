import logging.config

import pytest

from helpers.transport import FakeRemote
from mesosbridge.config import logging_config

logging.config.dictConfig(logging_config)
logging.getLogger("mesosbridge").setLevel("DEBUG")


@pytest.fixture(scope="function")
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture(scope="function")
def executor_env(monkeypatch) -> None:
    monkeypatch.setenv("MESOS_AGENT_ENDPOINT", "slave(1)@localhost:5051")
    monkeypatch.setenv("MESOS_FRAMEWORK_ID", "fw-1")
    monkeypatch.setenv("MESOS_EXECUTOR_ID", "ex-1")
