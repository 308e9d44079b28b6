"""
Core data structures -- the lifecycle states of a driver and the status codes returned by
every lifecycle call and command
"""

from enum import Enum, auto

from typing_extensions import assert_never

# NOTE values 1-4 match the `Status` enum of the Mesos protocol, so that the ints can be
# handed to code written against the native driver. INVALID_STATE has no native counterpart
class Status(int, Enum):
    NOT_STARTED = 1
    RUNNING = 2
    ABORTED = 3
    STOPPED = 4
    INVALID_STATE = 5


class LifecycleState(Enum):
    created = auto()
    started = auto()
    running = auto()
    stopped = auto()
    aborted = auto()
    destroyed = auto()


HandleId = str  # generated, human readable, for logging
Address = str  # eg zmq address, tcp://host:port

active_states = frozenset({LifecycleState.started, LifecycleState.running})


def status_of(state: LifecycleState) -> Status:
    """The status code which corresponds to the state -- what a successful call reports"""
    if state == LifecycleState.created:
        return Status.NOT_STARTED
    elif state in active_states:
        return Status.RUNNING
    elif state == LifecycleState.stopped:
        return Status.STOPPED
    elif state == LifecycleState.aborted:
        return Status.ABORTED
    elif state == LifecycleState.destroyed:
        # NOTE callers check for destroyed first and raise, this is unreachable in practice
        return Status.INVALID_STATE
    else:
        assert_never(state)
