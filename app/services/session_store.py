from __future__ import annotations

import asyncio

from app.models import DocumentSession


class UnknownSessionError(KeyError):
    pass


class SessionStore:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._sessions: dict[str, DocumentSession] = {}

    async def add(self, session: DocumentSession) -> DocumentSession:
        async with self._lock:
            self._sessions[session.conversation_id] = session
            return session

    async def get(self, conversation_id: str) -> DocumentSession:
        async with self._lock:
            session = self._sessions.get(conversation_id)
            if session is None:
                raise UnknownSessionError(conversation_id)
            return session

    async def remove(self, conversation_id: str) -> None:
        async with self._lock:
            self._sessions.pop(conversation_id, None)

    async def all_sessions(self) -> list[DocumentSession]:
        async with self._lock:
            return list(self._sessions.values())


session_store = SessionStore()
