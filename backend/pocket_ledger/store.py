import threading
import time
from datetime import datetime, timezone
from uuid import uuid4

_id_lock = threading.Lock()
_last_millis = 0
_sequence = 0


def make_id() -> str:
    """Time-ordered opaque id: milliseconds, a per-millisecond counter and a random suffix."""
    global _last_millis, _sequence
    with _id_lock:
        millis = max(int(time.time() * 1000), _last_millis)
        if millis == _last_millis and _sequence < 9999:
            _sequence += 1
        else:
            if millis == _last_millis:
                millis += 1
            _last_millis = millis
            _sequence = 0
        seq = _sequence
    return f"{millis:013d}{seq:04d}{uuid4().hex[:8]}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InMemoryStore:
    def __init__(self) -> None:
        self.transactions: dict[str, dict] = {}
        self.settings: dict[str, object] | None = None

    @staticmethod
    def make_id() -> str:
        return make_id()

    @staticmethod
    def now() -> datetime:
        return utc_now()
