"""
Python drivers for Mesos-style schedulers and executors. The driver owns the connection to
the master/agent and the event-delivery thread; the caller supplies a callback table and an
opaque payload which is echoed back on every callback.
"""

from mesosbridge.version import __version__
from mesosbridge.low.core import Status, LifecycleState
from mesosbridge.errors import ContractViolation
from mesosbridge.envelope import Envelope
from mesosbridge.callbacks import SchedulerCallbacks, ExecutorCallbacks
from mesosbridge.driver.scheduler import SchedulerDriver
from mesosbridge.driver.executor import ExecutorDriver

__all__ = [
    "__version__",
    "Status",
    "LifecycleState",
    "ContractViolation",
    "Envelope",
    "SchedulerCallbacks",
    "ExecutorCallbacks",
    "SchedulerDriver",
    "ExecutorDriver",
]
