"""Shared fixtures and Telegram fakes for the Podcast Bot tests."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Adds src/ to PYTHONPATH so modules import by bare name, as in the bot
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from storage import SessionStore  # noqa: E402

CHAT_ID = 4242


def make_message(text: str = "") -> MagicMock:
    message = MagicMock()
    message.text = text
    message.reply_text = AsyncMock()
    message.reply_audio = AsyncMock()
    return message


def make_command_update(text: str, chat_id: int = CHAT_ID) -> MagicMock:
    update = MagicMock()
    update.effective_chat.id = chat_id
    update.message = make_message(text)
    return update


def make_callback_update(data: str, chat_id: int = CHAT_ID) -> MagicMock:
    update = MagicMock()
    update.effective_chat.id = chat_id
    update.callback_query.data = data
    update.callback_query.answer = AsyncMock()
    update.callback_query.message = make_message()
    return update


@pytest.fixture
def store() -> SessionStore:
    return SessionStore(ttl_seconds=3600)


@pytest.fixture
def context(store: SessionStore) -> MagicMock:
    ctx = MagicMock()
    ctx.bot_data = {"sessions": store}
    return ctx


@pytest.fixture
def audio_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    import services

    monkeypatch.setattr(services, "AUDIO_DIR", str(tmp_path))
    return tmp_path
