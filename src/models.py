"""
Data models for Podcast Bot.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Phase(Enum):
    """Machine states for the bot conversation flow."""
    INITIAL = "initial"
    CATEGORY = "category"
    TOPIC = "topic"


@dataclass
class UserSession:
    """User session state for the conversation flow."""
    chat_id: int
    phase: Phase = Phase.INITIAL

    # User selections
    category: str = ""
    topic: str = ""

    # Generated script
    script_text: str = ""

    # Timestamps
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def touch(self) -> None:
        """Mark the session as recently used."""
        self.updated_at = _utcnow()
