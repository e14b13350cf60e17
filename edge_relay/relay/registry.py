from abc import ABC, abstractmethod
import asyncio
import logging
import os
from typing import List, Optional

from edge_relay.relay.session import RelaySession
from edge_relay.vars import RELAY_SHUTDOWN_TIMEOUT

logger = logging.getLogger("uvicorn.error")


class SessionRegistryBase(ABC):
    @abstractmethod
    def get(self, session_id: str) -> Optional[RelaySession]:
        pass

    @abstractmethod
    def set(self, session_id: str, session: RelaySession):
        pass

    @abstractmethod
    def pop(self, session_id: str, default=None) -> Optional[RelaySession]:
        pass

    @abstractmethod
    def sessions(self) -> List[RelaySession]:
        pass

    async def shutdown_all(
        self,
        code: int = 1001,
        reason: str = "Server shutting down",
        timeout: float = RELAY_SHUTDOWN_TIMEOUT,
    ):
        """Ask every open session to close and wait, up to ``timeout``, until they have."""
        sessions = self.sessions()
        if not sessions:
            return
        logger.info(f"[Relay] Closing {len(sessions)} active sessions")
        for session in sessions:
            session.shutdown(code, reason)
        try:
            await asyncio.wait_for(
                asyncio.gather(*(session.closed.wait() for session in sessions)),
                timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"[Relay] Sessions still open after {timeout}s, shutting down anyway"
            )


def session_registry(
    name: str = os.getenv("RELAY_SESSION_REGISTRY", "InMemorySessionRegistry")
) -> SessionRegistryBase:
    if name == "InMemorySessionRegistry":
        return InMemorySessionRegistry()
    cls = globals().get(name)
    if isinstance(cls, type) and issubclass(cls, SessionRegistryBase):
        return cls()
    else:
        raise ValueError(f"Unknown session registry type: {name}")


class InMemorySessionRegistry(SessionRegistryBase):
    def __init__(self):
        self._sessions: dict[str, RelaySession] = {}

    def get(self, session_id: str) -> Optional[RelaySession]:
        return self._sessions.get(session_id)

    def set(self, session_id: str, session: RelaySession):
        self._sessions[session_id] = session

    def pop(self, session_id: str, default=None) -> Optional[RelaySession]:
        return self._sessions.pop(session_id, default)

    def sessions(self) -> List[RelaySession]:
        return list(self._sessions.values())
