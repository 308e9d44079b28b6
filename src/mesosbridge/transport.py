"""
This module handles the communication with the remote master or agent.

The zmq implementation is partially thread safe -- `recv_messages` must be called from the
dispatch thread only, and `send` from one thread at a time. The driver guarantees the latter
by sending only while holding its lock
"""

import logging
import re
from typing import Callable, Protocol, runtime_checkable

import zmq

from mesosbridge.config import DriverConfig
from mesosbridge.low.core import Address
from mesosbridge.msg import Message
from mesosbridge.serde import ser_message, des_message

logger = logging.getLogger(__name__)

_pid_re = re.compile(r"^(?:(?P<scheme>tcp)://|(?P<name>[^@/\s]+)@)?(?P<host>[^:@/\s]+):(?P<port>\d+)$")


def parse_pid(pid: str) -> Address:
    """Converts `master@host:port`, `host:port` or `tcp://host:port` to a zmq address"""
    match = _pid_re.match(pid.strip()) if isinstance(pid, str) else None
    if match is None:
        raise ValueError(f"unsupported address: {pid!r}")
    port = int(match.group("port"))
    if not 0 < port < 65536:
        raise ValueError(f"port out of range: {pid!r}")
    return f"tcp://{match.group('host')}:{port}"


@runtime_checkable
class Transport(Protocol):
    @property
    def address(self) -> Address:
        """Where the remote side should send its messages to. Valid after `connect`"""
        raise NotImplementedError

    def connect(self) -> None:
        raise NotImplementedError

    def send(self, m: Message) -> None:
        """Raises zmq.Again if the outbound queue stays full for longer than the send timeout"""
        raise NotImplementedError

    def recv_messages(self, timeout_sec: float | None) -> list[Message]:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


TransportFactory = Callable[[Address, DriverConfig], Transport]


class ZmqTransport:
    def __init__(self, remote: Address, config: DriverConfig) -> None:
        self.remote = remote
        self.config = config
        self.context: zmq.Context | None = None
        self.push: zmq.Socket | None = None
        self.pull: zmq.Socket | None = None
        self.poller = zmq.Poller()
        self._address: Address | None = None

    @property
    def address(self) -> Address:
        if self._address is None:
            raise ValueError("transport not connected")
        return self._address

    def connect(self) -> None:
        # NOTE we bind before sending anything, as otherwise we may lose the remote's replies
        self.context = zmq.Context()
        self.pull = self.context.socket(zmq.PULL)
        self.pull.set(zmq.LINGER, 0)
        port = self.pull.bind_to_random_port("tcp://*")
        self._address = f"tcp://{self.config.listen_host}:{port}"
        self.poller.register(self.pull, flags=zmq.POLLIN)
        self.push = self.context.socket(zmq.PUSH)
        # NOTE we set the linger in case the remote is gone -- otherwise close would hang indefinitely
        self.push.set(zmq.LINGER, self.config.linger_ms)
        # NOTE sends happen under the driver lock, an unreachable remote must not block them forever
        self.push.set(zmq.SNDTIMEO, self.config.send_timeout_ms)
        self.push.connect(self.remote)
        logger.debug(f"listening at {self._address}, connected to {self.remote}")

    def send(self, m: Message) -> None:
        if self.push is None:
            raise ValueError("transport not connected")
        self.push.send(ser_message(m))

    def _recv_one(self, timeout_sec: float | None) -> Message | None:
        ready = self.poller.poll(int(timeout_sec * 1_000) if timeout_sec is not None else None)
        if len(ready) > 1:
            raise ValueError(f"unexpected number of socket events: {len(ready)}")
        if not ready:
            return None
        return des_message(ready[0][0].recv())

    def recv_messages(self, timeout_sec: float | None) -> list[Message]:
        if self.pull is None:
            raise ValueError("transport not connected")
        messages: list[Message] = []
        message = self._recv_one(timeout_sec)
        if message is not None:
            messages.append(message)
            while (message := self._recv_one(0)) is not None:
                messages.append(message)
        return messages

    def close(self) -> None:
        for socket in (self.push, self.pull):
            if socket is not None:
                socket.close()
        if self.context is not None:
            self.context.term()
        self.push, self.pull, self.context = None, None, None
