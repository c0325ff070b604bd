"""
In-memory registry for server-run games (matches, quizzes, rounds).

Entries nobody has touched for the TTL are dropped lazily, on the next add
or lookup, the same way the chat broker expires its sessions. The clock is
injectable so tests can age entries without sleeping.
"""
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Generic, Optional, TypeVar

from loguru import logger

from config.game_config import CONFIG
from utils.error_handler import GameRuleError

T = TypeVar("T")


@dataclass
class _Slot(Generic[T]):
    value: T
    last_seen: float


class SessionStore(Generic[T]):
    """Thread-safe id -> game state map with idle expiry."""

    def __init__(self, label: str = "session", ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.time):
        self.label = label
        self.ttl_seconds = (CONFIG.rules.game_session_ttl_seconds
                            if ttl_seconds is None else ttl_seconds)
        self._clock = clock
        self._slots: Dict[str, _Slot[T]] = {}
        self._lock = Lock()

    def cleanup(self) -> int:
        """Drop idle entries. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [key for key, slot in self._slots.items()
                     if now - slot.last_seen > self.ttl_seconds]
            for key in stale:
                del self._slots[key]
        if stale:
            logger.debug(f"Dropped {len(stale)} idle {self.label}s")
        return len(stale)

    def add(self, key: str, value: T) -> T:
        self.cleanup()
        with self._lock:
            self._slots[key] = _Slot(value=value, last_seen=self._clock())
        return value

    def get(self, key: str) -> T:
        """Look up and touch. GameRuleError for unknown or expired ids."""
        self.cleanup()
        with self._lock:
            slot = self._slots.get(key) if isinstance(key, str) else None
            if slot is None:
                raise GameRuleError(f"Unknown {self.label}: {key}")
            slot.last_seen = self._clock()
            return slot.value

    def pop(self, key: str) -> Optional[T]:
        with self._lock:
            slot = self._slots.pop(key, None)
        return slot.value if slot else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._slots
