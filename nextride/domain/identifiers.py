"""
Time-ordered record identifiers.

Layout follows the 12-byte ObjectId: 4 bytes of unix seconds, 5 bytes of
per-process randomness, 3 bytes of a wrapping counter, rendered as 24
lowercase hex characters. Ascending id order is insertion order, which is
what keyset pagination sorts on.
"""
import itertools
import os
import re
import secrets
import threading
import time

_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")

_process_random = secrets.token_hex(5)
_process_pid = os.getpid()
_counter = itertools.count(secrets.randbelow(0x7FFFFF))
_lock = threading.Lock()


def new_record_id() -> str:
    global _process_random, _process_pid

    with _lock:
        if os.getpid() != _process_pid:
            # Forked worker: never share the random segment with the parent
            _process_pid = os.getpid()
            _process_random = secrets.token_hex(5)
        seq = next(_counter) & 0xFFFFFF
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{_process_random}{seq:06x}"


def is_record_id(value: object) -> bool:
    return isinstance(value, str) and _ID_PATTERN.match(value) is not None
