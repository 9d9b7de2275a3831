from __future__ import annotations

"""In-process conversation memory.

Transcripts live only as long as the process does. Each client id owns one
session; a session allows a single outstanding model request at a time.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from cachetools import TTLCache

from coach.core.prompt import COMPLETION_PHRASE, GREETING_TEMPLATE


logger = logging.getLogger(__name__)


class SessionBusyError(RuntimeError):
    """A request for this session is already in flight."""


class SessionNotStartedError(RuntimeError):
    """The conversation has not been started yet."""


class IntakeIncompleteError(RuntimeError):
    """The assistant has not confirmed every profile field yet."""


class ConversationSession:
    def __init__(
        self,
        client_id: str,
        assistant_name: str = "CodeFlex AI",
        fallback_reply: Optional[str] = None,
    ) -> None:
        self.client_id = client_id
        self.assistant_name = assistant_name
        self.fallback_reply = fallback_reply
        self.started = False
        self.program: Optional[Dict[str, Any]] = None
        self._turns: List[Dict[str, str]] = []
        self._busy = threading.Lock()

    @property
    def loading(self) -> bool:
        return self._busy.locked()

    @property
    def messages(self) -> List[Dict[str, str]]:
        return [dict(turn) for turn in self._turns]

    @property
    def completed(self) -> bool:
        marker = COMPLETION_PHRASE.lower()
        for turn in reversed(self._turns):
            if turn["role"] == "assistant":
                return marker in turn["content"].lower()
        return False

    @contextmanager
    def request(self) -> Iterator[None]:
        if not self._busy.acquire(blocking=False):
            raise SessionBusyError(f"Session {self.client_id} is waiting for a reply")
        try:
            yield
        finally:
            self._busy.release()

    def start(self, display_name: Optional[str] = None) -> str:
        greeting = GREETING_TEMPLATE.format(name=(display_name or "").strip() or "User")
        with self.request():
            self.started = True
            self.program = None
            self._turns = [{"role": "assistant", "content": greeting}]
        return greeting

    def send(self, text: str, forward: Callable[[List[Dict[str, str]]], str]) -> Dict[str, Optional[str]]:
        """Append a user turn, forward the transcript and append the reply.

        A failed forward never touches earlier turns: the user turn is left
        unanswered, or answered with the fallback reply when one is set.
        """
        text = (text or "").strip()
        if not text:
            raise ValueError("Message is empty")
        if not self.started:
            raise SessionNotStartedError(f"Session {self.client_id} has not been started")

        with self.request():
            self._turns.append({"role": "user", "content": text})
            try:
                reply = forward(self.messages)
            except Exception as exc:
                logger.exception(
                    "Reply failed: client_id=%s turns=%s", self.client_id, len(self._turns)
                )
                if self.fallback_reply:
                    self._turns.append({"role": "assistant", "content": self.fallback_reply})
                    return {"ai_response": self.fallback_reply, "error": str(exc)}
                return {"ai_response": None, "error": str(exc)}

            if reply:
                self._turns.append({"role": "assistant", "content": reply})
            logger.info(
                "Reply received: client_id=%s chars=%s completed=%s",
                self.client_id,
                len(reply or ""),
                self.completed,
            )
            return {"ai_response": reply, "error": None}

    def render(self) -> str:
        blocks = []
        for turn in self._turns:
            label = self.assistant_name if turn["role"] == "assistant" else "You"
            blocks.append(f"{label}:\n{turn['content']}")
        return "\n\n".join(blocks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "client_id": self.client_id,
            "started": self.started,
            "loading": self.loading,
            "completed": self.completed,
            "messages": self.messages,
        }


class SessionStore:
    """Sessions keyed by client id.

    Holds at most ``max_sessions`` entries, evicting the least recently used
    one first, and forgets a session idle for longer than ``ttl`` seconds.
    Any lookup counts as activity.
    """

    def __init__(
        self,
        assistant_name: str = "CodeFlex AI",
        fallback_reply: Optional[str] = None,
        max_sessions: int = 1000,
        ttl: float = 3600,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.assistant_name = assistant_name
        self.fallback_reply = fallback_reply
        self._sessions: TTLCache = TTLCache(maxsize=max_sessions, ttl=ttl, timer=timer)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._sessions.expire()
            return len(self._sessions)

    def _touch(self, client_id: str) -> Optional[ConversationSession]:
        session = self._sessions.get(client_id)
        if session is not None:
            # Re-inserting restarts the idle clock
            self._sessions[client_id] = session
        return session

    def get(self, client_id: str) -> Optional[ConversationSession]:
        with self._lock:
            return self._touch(client_id)

    def get_or_create(self, client_id: str) -> ConversationSession:
        with self._lock:
            session = self._touch(client_id)
            if session is None:
                session = ConversationSession(
                    client_id,
                    assistant_name=self.assistant_name,
                    fallback_reply=self.fallback_reply,
                )
                self._sessions[client_id] = session
                logger.info("Session created: client_id=%s open=%s", client_id, len(self._sessions))
            return session

    def drop(self, client_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(client_id, None) is not None
