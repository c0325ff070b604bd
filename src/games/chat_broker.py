"""
Chat broker - relays Humanish messages between a player and a volunteer.

In-memory message queues keyed by session id. Clients join, send and poll
(by last seen message id). Sessions nobody has touched for the TTL are
dropped. If the player has been waiting on a volunteer too long the poll
response says so, and the client hands the chat to the bot.
"""
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from config.game_config import CONFIG
from utils.error_handler import GameRuleError

ACTIONS = ("join", "send", "poll")
USER_TYPES = ("player", "volunteer")


@dataclass
class BrokerSession:
    session_id: str
    messages: List[Dict[str, Any]] = field(default_factory=list)
    last_seen: float = 0.0
    last_type: Optional[str] = None


class ChatBroker:
    """Thread-safe message relay."""

    def __init__(self, ttl_seconds: Optional[float] = None,
                 failover_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.time):
        rules = CONFIG.rules
        self.ttl_seconds = rules.broker_session_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.failover_seconds = (rules.volunteer_failover_seconds
                                 if failover_seconds is None else failover_seconds)
        self._clock = clock
        self._sessions: Dict[str, BrokerSession] = {}
        self._last_id = 0
        self._lock = Lock()

    # ============================================
    # HOUSEKEEPING
    # ============================================

    def cleanup(self) -> int:
        """Drop stale sessions. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [sid for sid, s in self._sessions.items()
                     if now - s.last_seen > self.ttl_seconds]
            for sid in stale:
                del self._sessions[sid]
        if stale:
            logger.debug(f"Chat broker dropped {len(stale)} stale sessions")
        return len(stale)

    def _session(self, session_id: str) -> BrokerSession:
        """Caller must hold lock."""
        session = self._sessions.get(session_id)
        if session is None:
            session = BrokerSession(session_id=session_id, last_seen=self._clock())
            self._sessions[session_id] = session
        return session

    def _touch(self, session: BrokerSession, user_type: Optional[str]):
        session.last_seen = self._clock()
        session.last_type = user_type

    def _next_id(self) -> str:
        """Millisecond timestamp, bumped to stay unique and increasing."""
        self._last_id = max(int(self._clock() * 1000), self._last_id + 1)
        return str(self._last_id)

    # ============================================
    # ACTIONS
    # ============================================

    def join(self, session_id: str, user_type: str = "player") -> Dict[str, Any]:
        self.cleanup()
        with self._lock:
            self._touch(self._session(session_id), user_type)
        logger.info(f"{user_type} joined chat session {session_id}")
        return {"success": True, "sessionId": session_id}

    def send(self, session_id: str, user_type: str, text: str) -> Dict[str, Any]:
        if user_type not in USER_TYPES:
            raise GameRuleError("userType must be player or volunteer")
        if not isinstance(text, str) or not text.strip():
            raise GameRuleError("message is required")
        self.cleanup()
        with self._lock:
            session = self._session(session_id)
            message = {
                "id": self._next_id(),
                "sender": user_type,
                "text": text,
                "timestamp": int(self._clock() * 1000),
            }
            session.messages.append(message)
            self._touch(session, user_type)
        return {"success": True, "id": message["id"]}

    def poll(self, session_id: str, last_message_id: Optional[str] = None,
             user_type: Optional[str] = None) -> Dict[str, Any]:
        """Messages after last_message_id (all of them if it is unknown)."""
        self.cleanup()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return {"messages": [], "failover": False}
            messages = session.messages
            last_index = -1
            if last_message_id:
                last_index = next((i for i, m in enumerate(messages)
                                   if m["id"] == str(last_message_id)), -1)
            new_messages = [dict(m) for m in messages[last_index + 1:]]
            if user_type:
                self._touch(session, user_type)
            failover = self._waiting_too_long(session)
        return {"messages": new_messages, "failover": failover}

    def _waiting_too_long(self, session: BrokerSession) -> bool:
        """Player spoke last and no volunteer answered within the failover window."""
        if not session.messages:
            return False
        last = session.messages[-1]
        if last["sender"] != "player":
            return False
        waited = self._clock() - last["timestamp"] / 1000.0
        return waited >= self.failover_seconds

    def handle(self, action: str, session_id: str, message: Optional[str] = None,
               user_type: Optional[str] = None,
               last_message_id: Optional[str] = None) -> Dict[str, Any]:
        """Dispatch one POST body."""
        if not isinstance(session_id, str) or not session_id:
            raise GameRuleError("Session ID required")
        if action == "send":
            return self.send(session_id, user_type, message)
        if action == "poll":
            return self.poll(session_id, last_message_id, user_type)
        if action == "join":
            return self.join(session_id, user_type or "player")
        raise GameRuleError("Invalid action")

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)
