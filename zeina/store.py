from __future__ import annotations

from typing import Callable, Dict, List, Optional

from .agents.assistant import ConversationSession
from .schemas import ToolCallEvent

SessionFactory = Callable[..., ConversationSession]


class SessionRegistry:
    """In-process map of session id -> live ConversationSession."""

    def __init__(self, factory: SessionFactory) -> None:
        self.factory = factory
        self.sessions: Dict[str, ConversationSession] = {}

    def create_session(self, language: Optional[str] = None, user_id: Optional[str] = None) -> ConversationSession:
        session = self.factory(language=language, user_id=user_id)
        self.sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[ConversationSession]:
        return self.sessions.get(session_id)

    def close_session(self, session_id: str) -> bool:
        session = self.sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    def list_tool_calls(self, session_id: str) -> List[ToolCallEvent]:
        return self.sessions[session_id].tool_events

    def close_all(self) -> None:
        for session_id in list(self.sessions):
            self.close_session(session_id)
