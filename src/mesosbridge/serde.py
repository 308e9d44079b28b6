"""
This module is responsible for Serialization & Deserialization of messages
"""

import pickle

from mesosbridge.msg import Message, VERSION

# NOTE for start, we simply pickle the msg classes -- the messages are small dataclasses around
# opaque bytes, and pickle is reasonably performant for both. The version is prepended so that
# two incompatible builds fail loudly instead of misinterpreting each other

def ser_message(m: Message) -> bytes:
    return VERSION.to_bytes(2, "big") + pickle.dumps(m)

def des_message(b: bytes) -> Message:
    version = int.from_bytes(b[:2], "big")
    if version != VERSION:
        raise ValueError(f"unsupported message version {version}, expected {VERSION}")
    return pickle.loads(b[2:])
