import datetime
from typing import NamedTuple

from values import RegisterValue


class CachedValue(NamedTuple):
    value: RegisterValue
    retrieved_at: datetime.datetime


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


class RegisterCache:
    """Last decoded value per register id, for the lifetime of one session."""

    def __init__(self, clock=_utcnow):
        self._clock = clock
        self._entries = {}

    def get(self, register_id):
        return self._entries.get(register_id)

    def put(self, register_id, value):
        entry = CachedValue(value, self._clock())
        self._entries[register_id] = entry
        return entry

    def clear(self):
        self._entries.clear()

    def __contains__(self, register_id):
        return register_id in self._entries

    def __len__(self):
        return len(self._entries)
