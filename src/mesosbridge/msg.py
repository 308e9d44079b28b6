"""
This module defines all messages exchanged between the drivers and the remote master/agent.
Bodies are opaque serialized protobufs -- we ship them as bytes and never look inside
"""

# NOTE about representation -- we could have gone with pydantic, but since there is nothing to
# validate in opaque bytes and we serialize with pickle anyway, there is no point in the
# overhead. We are sticking to plain dataclasses

from dataclasses import dataclass

from mesosbridge.low.core import Address

## Meta

VERSION = 1  # for serde compatibility

## Scheduler <-> master

@dataclass(frozen=True)
class RegisterFramework:
    framework: bytes  # FrameworkInfo
    reply_to: Address

@dataclass(frozen=True)
class UnregisterFramework:
    framework_id: bytes

@dataclass(frozen=True)
class FrameworkRegistered:
    framework_id: bytes
    master_info: bytes

@dataclass(frozen=True)
class FrameworkReregistered:
    master_info: bytes

@dataclass(frozen=True)
class ResourceOffers:
    offers: list[bytes]  # batched by the master, dispatched as one callback

@dataclass(frozen=True)
class RescindResourceOffer:
    offer_id: bytes

@dataclass(frozen=True)
class LaunchTasks:
    framework_id: bytes
    offer_ids: list[bytes]
    tasks: list[bytes]
    filters: bytes  # empty for no filters

@dataclass(frozen=True)
class DeclineOffer:
    framework_id: bytes
    offer_id: bytes
    filters: bytes  # empty for no filters

@dataclass(frozen=True)
class ReviveOffers:
    framework_id: bytes

@dataclass(frozen=True)
class RequestResources:
    framework_id: bytes
    requests: list[bytes]

@dataclass(frozen=True)
class SlaveLost:
    slave_id: bytes

@dataclass(frozen=True)
class ExecutorLost:
    executor_id: bytes
    slave_id: bytes
    status: int

## Executor <-> agent

@dataclass(frozen=True)
class RegisterExecutor:
    framework_id: bytes
    executor_id: bytes
    reply_to: Address

@dataclass(frozen=True)
class ExecutorRegistered:
    executor_info: bytes
    framework_info: bytes
    slave_info: bytes

@dataclass(frozen=True)
class ExecutorReregistered:
    slave_info: bytes

@dataclass(frozen=True)
class RunTask:
    task: bytes  # TaskInfo

@dataclass(frozen=True)
class ShutdownExecutor:
    pass

## Shared by both sides

@dataclass(frozen=True)
class KillTask:
    framework_id: bytes
    task_id: bytes

@dataclass(frozen=True)
class StatusUpdate:
    status: bytes  # TaskStatus
    uuid: bytes  # empty when no acknowledgement is expected

@dataclass(frozen=True)
class StatusUpdateAcknowledgement:
    framework_id: bytes
    uuid: bytes

@dataclass(frozen=True)
class FrameworkToExecutor:
    framework_id: bytes
    executor_id: bytes
    slave_id: bytes
    data: bytes

@dataclass(frozen=True)
class ExecutorToFramework:
    framework_id: bytes
    executor_id: bytes
    slave_id: bytes
    data: bytes

@dataclass(frozen=True)
class Disconnected:
    pass

@dataclass(frozen=True)
class Error:
    message: str

# unions per direction, the drivers dispatch on these with isinstance chains
SchedulerEvent = FrameworkRegistered|FrameworkReregistered|ResourceOffers|RescindResourceOffer|StatusUpdate|ExecutorToFramework|SlaveLost|ExecutorLost|Disconnected|Error
SchedulerCommand = RegisterFramework|UnregisterFramework|LaunchTasks|DeclineOffer|KillTask|ReviveOffers|RequestResources|FrameworkToExecutor|StatusUpdateAcknowledgement
ExecutorEvent = ExecutorRegistered|ExecutorReregistered|RunTask|KillTask|FrameworkToExecutor|ShutdownExecutor|StatusUpdateAcknowledgement|Disconnected|Error
ExecutorCommand = RegisterExecutor|StatusUpdate|ExecutorToFramework
Message = SchedulerEvent|SchedulerCommand|ExecutorEvent|ExecutorCommand
