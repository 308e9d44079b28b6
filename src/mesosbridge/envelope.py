"""
The envelope which carries one serialized message across the boundary, together with
the ownership rules that govern it.

Two patterns exist:
 - borrow-for-call: the envelope is valid only while the call which received it runs. The
   driver lends envelopes to callbacks via `borrowed`, and releases them once the callback
   returns -- any later access raises ContractViolation. Commands copy their inputs via
   `copy_in` before returning, so the caller may reuse its buffers immediately.
 - transfer-then-reclaim: `Envelope.transfer` hands out a fresh envelope which the receiver
   must `reclaim` exactly once. No driver call uses it at the moment.

Sequences of messages (tasks, offer ids, requests) are packed into a single envelope as
records prefixed by their length, an unsigned 64 bit little endian integer.
"""

import struct
from contextlib import ExitStack, contextmanager
from enum import Enum, auto
from typing import Any, Iterable, Iterator, Protocol, runtime_checkable

from typing_extensions import Self

from mesosbridge.errors import ContractViolation

_length_prefix = struct.Struct("<Q")


@runtime_checkable
class ProtobufMessage(Protocol):
    """What we need from a generated protobuf class. We don't import protobuf ourselves"""

    def SerializeToString(self) -> bytes:
        raise NotImplementedError

    def MergeFromString(self, serialized: bytes) -> Any:
        raise NotImplementedError


class Ownership(Enum):
    owned = auto()  # constructed by the holder, plain value semantics
    borrowed = auto()  # lent for the duration of a call
    transferred = auto()  # handed over, must be reclaimed exactly once


class Envelope:
    """Immutable byte region with an exact length. The bytes are copied at construction, so
    that both the data and the size are fixed before anyone can observe the envelope"""

    __slots__ = ("_data", "_ownership", "_released", "_views")

    def __init__(self, data: bytes | bytearray | memoryview = b"", ownership: Ownership = Ownership.owned) -> None:
        self._data = bytes(data)
        self._ownership = ownership
        self._released = False
        self._views: list[memoryview] = []

    @classmethod
    def absent(cls) -> Self:
        """The zero-length sentinel, legal only where a call documents an optional value"""
        return cls(b"")

    @classmethod
    def from_message(cls, message: ProtobufMessage) -> Self:
        return cls(message.SerializeToString())

    @classmethod
    def transfer(cls, data: bytes | bytearray | memoryview) -> Self:
        return cls(data, Ownership.transferred)

    def _check(self) -> None:
        if self._released:
            raise ContractViolation(f"access to a released {self._ownership.name} envelope")

    @property
    def ownership(self) -> Ownership:
        return self._ownership

    @property
    def released(self) -> bool:
        return self._released

    @property
    def size(self) -> int:
        self._check()
        return len(self._data)

    @property
    def is_absent(self) -> bool:
        return self.size == 0

    def __len__(self) -> int:
        return self.size

    def __bytes__(self) -> bytes:
        self._check()
        return self._data

    def tobytes(self) -> bytes:
        return bytes(self)

    def view(self) -> memoryview:
        """Read-only view over the bytes. Invalidated together with the envelope"""
        self._check()
        view = memoryview(self._data)
        self._views.append(view)
        return view

    def merge_into(self, message: ProtobufMessage) -> ProtobufMessage:
        message.MergeFromString(bytes(self))
        return message

    def reclaim(self) -> bytes:
        """Takes over a transferred envelope, releasing it"""
        if self._ownership != Ownership.transferred:
            raise ContractViolation(f"reclaim of a {self._ownership.name} envelope")
        self._check()
        data = self._data
        self._release()
        return data

    def _release(self) -> None:
        for view in self._views:
            view.release()
        self._views = []
        self._data = b""
        self._released = True

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Envelope):
            return bytes(self) == bytes(other)
        return NotImplemented

    __hash__ = None  # type: ignore

    def __repr__(self) -> str:
        if self._released:
            return f"Envelope(<released {self._ownership.name}>)"
        return f"Envelope(size={len(self._data)}, {self._ownership.name})"


@contextmanager
def borrowed(*payloads: bytes) -> Iterator[list[Envelope]]:
    """Lends the payloads as envelopes for the duration of the with block"""
    with ExitStack() as stack:
        envelopes = []
        for payload in payloads:
            envelope = Envelope(payload, Ownership.borrowed)
            stack.callback(envelope._release)
            envelopes.append(envelope)
        yield envelopes


def copy_in(value: Envelope | bytes | bytearray | memoryview) -> bytes:
    """Copies a command input into owned storage. We never keep the caller's object"""
    if isinstance(value, Envelope):
        return bytes(value)
    elif isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    else:
        raise TypeError(f"expected Envelope or bytes, gotten {type(value)}")


def copy_in_all(values: Iterable[Envelope | bytes | bytearray | memoryview]) -> list[bytes]:
    return [copy_in(value) for value in values]


def pack_sequence(items: Iterable[Envelope | bytes]) -> Envelope:
    buf = bytearray()
    for item in items:
        data = copy_in(item)
        buf += _length_prefix.pack(len(data))
        buf += data
    return Envelope(buf)


def unpack_sequence(packed: Envelope | bytes) -> list[bytes]:
    data = copy_in(packed)
    rv: list[bytes] = []
    offset = 0
    while offset < len(data):
        if offset + _length_prefix.size > len(data):
            raise ValueError(f"truncated length prefix at {offset=}")
        (l,) = _length_prefix.unpack_from(data, offset)
        offset += _length_prefix.size
        if offset + l > len(data):
            raise ValueError(f"record at {offset=} claims {l} bytes, only {len(data) - offset} remain")
        rv.append(data[offset : offset + l])
        offset += l
    return rv
