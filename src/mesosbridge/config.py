"""
Logging setup and driver settings. Everything can be overridden via environment variables,
settings of executors are in addition read from the environment the agent launches them with
"""

import os
import socket

from pydantic import BaseModel, Field
from typing_extensions import Self

env_prefix = "MESOSBRIDGE_"

logging_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "mesosbridge": {
            "level": os.environ.get(f"{env_prefix}LOG_LEVEL", "INFO"),
            "handlers": ["default"],
            "propagate": False,
        },
    },
    "root": {
        "level": "WARNING",
        "handlers": ["default"],
    },
}


class DriverConfig(BaseModel):
    recv_timeout_sec: float = Field(
        1.0,
        description="how long the dispatch loop waits for remote messages before checking its own state",
        gt=0,
    )
    linger_ms: int = Field(
        1000,
        description="zmq linger of the outbound socket, so that close does not hang on a dead remote",
        ge=0,
    )
    send_timeout_ms: int = Field(
        1000,
        description="how long a send may wait for room in the outbound queue before the remote counts as failed",
        gt=0,
    )
    status_update_resend_sec: float = Field(
        10.0,
        description="unacknowledged status updates older than this are sent again",
        gt=0,
    )
    listen_host: str = Field(
        default_factory=socket.gethostname,
        description="host part of the address we listen on for remote messages",
    )

    @classmethod
    def from_env(cls) -> Self:
        overrides = {}
        for field in cls.model_fields:
            if (value := os.environ.get(f"{env_prefix}{field.upper()}")) is not None:
                overrides[field] = value
        return cls(**overrides)


class ExecutorEnvironment(BaseModel):
    """What the agent tells a freshly launched executor about itself"""

    agent_endpoint: str = Field(description="pid or address of the agent, eg slave(1)@host:5051")
    framework_id: str = Field(min_length=1)
    executor_id: str = Field(min_length=1)

    @classmethod
    def from_env(cls) -> Self:
        """Raises ValueError if the executor was not launched by an agent"""
        agent_endpoint = os.environ.get("MESOS_AGENT_ENDPOINT") or os.environ.get("MESOS_SLAVE_PID")
        framework_id = os.environ.get("MESOS_FRAMEWORK_ID")
        executor_id = os.environ.get("MESOS_EXECUTOR_ID")
        if agent_endpoint is None or framework_id is None or executor_id is None:
            raise ValueError("executor environment incomplete, expected MESOS_AGENT_ENDPOINT (or MESOS_SLAVE_PID), MESOS_FRAMEWORK_ID and MESOS_EXECUTOR_ID")
        return cls(agent_endpoint=agent_endpoint, framework_id=framework_id, executor_id=executor_id)
