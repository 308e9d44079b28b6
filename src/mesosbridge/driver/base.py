"""
The lifecycle state machine and dispatch loop shared by the scheduler and executor drivers.

```
CREATED --start()--> STARTED --(connected)--> RUNNING
CREATED --run()----> RUNNING, blocking until STOPPED/ABORTED
STARTED/RUNNING --stop()--> STOPPED
STARTED/RUNNING --abort()--> ABORTED
any --destroy()--> DESTROYED
```

Every driver has one dispatch thread, started by `start`. It connects the transport, sends
the registration and then delivers remote messages to the callback table, one at a time.

A single reentrant lock guards the state and the transport's send side. The dispatch thread
holds it while a callback runs, thus:
 - callbacks never overlap, and no callback can run once stop/abort/destroy returned
 - a command issued from within a callback (same thread) goes through immediately
 - a command issued from another thread waits for the running callback to return
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable

import randomname

from mesosbridge.config import DriverConfig
from mesosbridge.envelope import borrowed
from mesosbridge.errors import ContractViolation
from mesosbridge.low.core import Address, HandleId, LifecycleState, Status, active_states, status_of
from mesosbridge.msg import Message
from mesosbridge.transport import Transport, TransportFactory, ZmqTransport

logger = logging.getLogger(__name__)


class Driver(ABC):
    kind = "driver"

    def __init__(
        self,
        callbacks: Any,
        payload: Any,
        remote: Address,
        config: DriverConfig | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self.handle_id: HandleId = randomname.get_name()
        self.config = config if config is not None else DriverConfig.from_env()
        self.remote = remote
        self._callbacks = callbacks
        self._payload = payload
        self._transport_factory: TransportFactory = transport_factory if transport_factory is not None else ZmqTransport
        self._transport: Transport | None = None

        self._lock = threading.RLock()
        self._state = LifecycleState.created
        self._connected = False
        self._backlog: list[Message] = []  # commands issued before the transport connected
        self._pending_error: str | None = None  # send failures, reported from the dispatch thread
        self._thread: threading.Thread | None = None
        self._done = threading.Event()
        self._final_status: Status | None = None

    ## subclass hooks

    @abstractmethod
    def _registration(self, reply_to: Address) -> Message:
        """The first message sent once the transport is connected"""
        raise NotImplementedError

    @abstractmethod
    def _handle(self, m: Message) -> None:
        """Dispatches one remote message. Called on the dispatch thread, under the lock"""
        raise NotImplementedError

    def _tick(self) -> None:
        """Called on every iteration of the dispatch loop, under the lock, while active"""
        pass

    ## inspection

    @property
    def state(self) -> LifecycleState:
        with self._lock:
            return self._state

    @property
    def status(self) -> Status:
        with self._lock:
            self._ensure_alive("status")
            return status_of(self._state)

    @property
    def payload(self) -> Any:
        self._ensure_alive("payload")
        return self._payload

    @property
    def callbacks(self) -> Any:
        self._ensure_alive("callbacks")
        return self._callbacks

    def _ensure_alive(self, op: str) -> None:
        if self._state == LifecycleState.destroyed:
            raise ContractViolation(f"{op} on destroyed {self.kind} driver {self.handle_id}")

    def _on_dispatch_thread(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread

    ## lifecycle

    def start(self) -> Status:
        with self._lock:
            self._ensure_alive("start")
            if self._state != LifecycleState.created:
                logger.warning(f"start of {self.kind} driver {self.handle_id} in state {self._state.name}")
                return Status.INVALID_STATE
            self._transport = self._transport_factory(self.remote, self.config)
            self._state = LifecycleState.started
            self._thread = threading.Thread(
                name=f"{self.kind}-{self.handle_id}",
                target=self._loop,
                daemon=True,
            )
            self._thread.start()
            logger.debug(f"started {self.kind} driver {self.handle_id} against {self.remote}")
            return Status.RUNNING

    def run(self) -> Status:
        """Starts the driver and blocks until it is stopped or aborted"""
        status = self.start()
        if status != Status.RUNNING:
            return status
        return self.join()

    def _stop(self, farewell: Message | None) -> Status:
        with self._lock:
            self._ensure_alive("stop")
            if self._state not in active_states:
                logger.warning(f"stop of {self.kind} driver {self.handle_id} in state {self._state.name}")
                return Status.INVALID_STATE
            if farewell is not None:
                self._send(farewell)
            self._state = LifecycleState.stopped
            logger.debug(f"stopped {self.kind} driver {self.handle_id}")
            return Status.STOPPED

    def abort(self) -> Status:
        with self._lock:
            self._ensure_alive("abort")
            if self._state not in active_states:
                logger.warning(f"abort of {self.kind} driver {self.handle_id} in state {self._state.name}")
                return Status.INVALID_STATE
            self._state = LifecycleState.aborted
            logger.debug(f"aborted {self.kind} driver {self.handle_id}")
            return Status.ABORTED

    def join(self) -> Status:
        """Blocks until the dispatch thread exited, returns the final status. Idempotent"""
        with self._lock:
            self._ensure_alive("join")
            if self._state == LifecycleState.created:
                return Status.NOT_STARTED
            if self._on_dispatch_thread():
                raise ContractViolation(f"join of {self.kind} driver {self.handle_id} from within its own callback")
        self._done.wait()
        # NOTE we don't re-check aliveness here -- a concurrent destroy is legal and waits for us too
        return self._final_status if self._final_status is not None else Status.ABORTED

    def destroy(self) -> None:
        """Legal from every state. Aborts an active driver, waits for the dispatch thread, and
        releases the transport and the callback table. The driver is unusable afterwards"""
        with self._lock:
            self._ensure_alive("destroy")
            if self._on_dispatch_thread():
                raise ContractViolation(f"destroy of {self.kind} driver {self.handle_id} from within its own callback")
            if self._state in active_states:
                logger.warning(f"destroying active {self.kind} driver {self.handle_id}, aborting it first")
                self._state = LifecycleState.aborted
            thread = self._thread
        if thread is not None:
            self._done.wait()
        with self._lock:
            self._ensure_alive("destroy")
            self._state = LifecycleState.destroyed
            self._callbacks = None
            self._payload = None
            self._transport = None
            self._backlog = []
        logger.debug(f"destroyed {self.kind} driver {self.handle_id}")

    ## commands

    def _command(self, op: str, message: Callable[[], Message]) -> Status:
        """Sends the message produced by `message` if the driver is active. The producer is only
        called once the state check passed, so a rejected command has no side effect"""
        with self._lock:
            self._ensure_alive(op)
            if self._state not in active_states:
                logger.debug(f"{op} on {self.kind} driver {self.handle_id} in state {self._state.name} rejected")
                return Status.INVALID_STATE
            self._send(message())
            return Status.RUNNING

    def _send(self, m: Message) -> None:
        if not self._connected:
            self._backlog.append(m)
            return
        if self._pending_error is not None:
            logger.debug(f"dropping {type(m).__name__} from {self.handle_id}, transport already failed")
            return
        try:
            logger.debug(f"sending {type(m).__name__} from {self.handle_id}")
            self._transport.send(m)  # type: ignore[union-attr]
        except Exception as e:
            # NOTE we are possibly on a caller's thread here, so the error callback has to wait for the loop
            logger.exception(f"failed to send {type(m).__name__} from {self.handle_id}")
            self._pending_error = repr(e)

    ## dispatch

    def _invoke(self, slot_name: str, *args: Any) -> None:
        slot = getattr(self._callbacks, slot_name)
        if slot is None:
            return
        try:
            slot(self, self._payload, *args)
        except ContractViolation:
            self._state = LifecycleState.aborted
            raise
        except Exception:
            logger.exception(f"{slot_name} callback of {self.kind} driver {self.handle_id} failed, aborting")
            if self._state in active_states:
                self._state = LifecycleState.aborted

    def _fail(self, message: str) -> None:
        """Transport or protocol failure: abort, then tell the callbacks"""
        with self._lock:
            if self._state not in active_states:
                logger.warning(f"{self.kind} driver {self.handle_id} failed after shutdown: {message}")
                return
            logger.error(f"{self.kind} driver {self.handle_id} failed, aborting: {message}")
            self._state = LifecycleState.aborted
            with borrowed(message.encode()) as (envelope,):
                self._invoke("error", envelope)

    def _is_active(self) -> bool:
        with self._lock:
            return self._state in active_states

    def _connect(self, transport: Transport) -> None:
        transport.connect()
        with self._lock:
            if self._state != LifecycleState.started:
                logger.debug(f"{self.kind} driver {self.handle_id} left before connecting, dropping {len(self._backlog)} commands")
                self._backlog = []
                return
            self._connected = True
            self._send(self._registration(transport.address))
            backlog, self._backlog = self._backlog, []
            for m in backlog:
                self._send(m)
            self._state = LifecycleState.running
            logger.debug(f"{self.kind} driver {self.handle_id} connected to {self.remote}")

    def _loop(self) -> None:
        transport = self._transport
        if transport is None:
            raise TypeError(f"no transport for {self.handle_id}")
        try:
            self._connect(transport)
            while self._is_active():
                if self._pending_error is not None:
                    self._fail(self._pending_error)
                    break
                for m in transport.recv_messages(self.config.recv_timeout_sec):
                    with self._lock:
                        if self._state not in active_states:
                            logger.debug(f"dropping {type(m).__name__} as {self.handle_id} is {self._state.name}")
                            continue
                        self._handle(m)
                with self._lock:
                    if self._state in active_states:
                        self._tick()
        except ContractViolation:
            logger.critical(f"contract violation on the dispatch thread of {self.handle_id}")
            raise
        except Exception as e:
            logger.exception(f"dispatch loop of {self.kind} driver {self.handle_id} failed")
            self._fail(repr(e))
        finally:
            with self._lock:
                self._connected = False
                self._backlog = []
                if self._state in active_states:
                    self._state = LifecycleState.aborted
                self._final_status = status_of(self._state)
                try:
                    transport.close()
                except Exception:
                    logger.exception(f"failed to close transport of {self.handle_id}")
            self._done.set()
            logger.debug(f"dispatch loop of {self.handle_id} exited with {self._final_status.name}")
