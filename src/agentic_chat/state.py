"""Session state record and lock-protected phase transitions."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
import logging

from .models import AgentConfig
from .transcript import Transcript

LOGGER = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    """Finite state machine for session-altering operations."""

    IDLE = "IDLE"
    SENDING = "SENDING"
    RESETTING = "RESETTING"
    LOADING = "LOADING"


@dataclass
class SessionState:
    """Conversation state owned by the session controller."""

    sender_identity: str
    agent_config: AgentConfig = field(default_factory=AgentConfig)
    transcript: Transcript = field(default_factory=Transcript)
    phase: SessionPhase = SessionPhase.IDLE
    last_error: str | None = None

    @property
    def pending(self) -> bool:
        """True while a send, reset or load call is outstanding."""
        return self.phase is not SessionPhase.IDLE


class StateManager:
    """Manage phase transitions of a ``SessionState`` with async lock semantics."""

    def __init__(self, state: SessionState) -> None:
        self._lock = asyncio.Lock()
        self._state = state

    async def get_phase(self) -> SessionPhase:
        """Return the current phase under lock."""
        async with self._lock:
            return self._state.phase

    async def transition_to(self, new_phase: SessionPhase) -> SessionPhase:
        """Move to a new phase unconditionally and return it."""
        async with self._lock:
            self._log_transition(self._state.phase, new_phase)
            self._state.phase = new_phase
            return new_phase

    async def transition_if(
        self,
        expected_phase: SessionPhase,
        new_phase: SessionPhase,
    ) -> bool:
        """Transition only when the current phase matches ``expected_phase``."""
        async with self._lock:
            if self._state.phase is not expected_phase:
                return False
            self._log_transition(self._state.phase, new_phase)
            self._state.phase = new_phase
            return True

    async def begin(self, new_phase: SessionPhase) -> bool:
        """Leave IDLE for ``new_phase``; False when another operation is active."""
        started = await self.transition_if(SessionPhase.IDLE, new_phase)
        if not started:
            LOGGER.warning(
                "session.transition.rejected",
                extra={
                    "event": "session.transition.rejected",
                    "active_phase": self._state.phase.value,
                    "requested_phase": new_phase.value,
                },
            )
        return started

    @staticmethod
    def _log_transition(old: SessionPhase, new: SessionPhase) -> None:
        LOGGER.debug(
            "session.phase.transition",
            extra={
                "event": "session.phase.transition",
                "from_phase": old.value,
                "to_phase": new.value,
            },
        )
