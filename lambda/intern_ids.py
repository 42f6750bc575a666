from __future__ import annotations

import secrets
import struct
import time
import uuid
from datetime import datetime, timezone

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
ID_BYTES = 16
ID_LENGTH = 22


def _base58_22(raw: bytes) -> str:
    if len(raw) != ID_BYTES:
        raise ValueError("id encoder requires exactly 16 bytes")
    n = int.from_bytes(raw, "big")
    chars: list[str] = []
    while n > 0:
        n, rem = divmod(n, 58)
        chars.append(BASE58_ALPHABET[rem])
    encoded = "".join(reversed(chars))
    return encoded.rjust(ID_LENGTH, BASE58_ALPHABET[0])


def new_record_id() -> str:
    return _base58_22(uuid.uuid4().bytes)


def new_task_id() -> str:
    # uuid7 layout: ids minted later sort later within one intern's list.
    ts_ms = int(time.time() * 1000)
    raw = bytearray(struct.pack(">Q", ts_ms)[2:] + secrets.token_bytes(10))
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return _base58_22(bytes(raw))


def now_iso() -> str:
    # Fixed-format UTC timestamp for lexicographic ordering.
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
