"""Tests for the LLM, speech and file helpers."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

import services
from services import (
    GenerationError,
    generate_script,
    generate_text,
    generate_topics,
    parse_topics,
    script_prompt,
    synthesize_speech,
    temporary_audio_file,
    topics_prompt,
    truncate_script,
)


@pytest.fixture
def ollama_client(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    client = MagicMock()
    client.chat = AsyncMock()
    monkeypatch.setattr(services, "_ollama_client", client)
    monkeypatch.setattr(services, "LLM_PROVIDER", "ollama")
    return client


@pytest.fixture
def openai_client(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.audio.speech.create = AsyncMock()
    monkeypatch.setattr(services, "_openai_client", client)
    return client


def _ollama_reply(content: str) -> dict:
    return {"message": {"role": "assistant", "content": content}}


class TestPrompts:

    def test_topics_prompt(self) -> None:
        assert topics_prompt("Health") == (
            "Generate 5 podcast topics about Health. "
            "Return as comma-separated list."
        )

    def test_script_prompt(self) -> None:
        assert script_prompt("Exercise", "Health") == (
            "Create a 2-minute podcast script about Exercise in Health "
            "category. Keep it under 400 words."
        )


class TestGenerateText:

    @pytest.mark.asyncio
    async def test_ollama_sends_single_user_message(self, ollama_client: MagicMock) -> None:
        ollama_client.chat.return_value = _ollama_reply("Hello there")

        result = await generate_text("Say hi")

        assert result == "Hello there"
        kwargs = ollama_client.chat.call_args.kwargs
        assert kwargs["model"] == services.LLM_MODEL
        assert kwargs["messages"] == [{"role": "user", "content": "Say hi"}]

    @pytest.mark.asyncio
    async def test_think_block_is_stripped(self, ollama_client: MagicMock) -> None:
        ollama_client.chat.return_value = _ollama_reply(
            "<think>\nlet me see\n</think>\n\nA, B, C"
        )

        assert await generate_text("prompt") == "A, B, C"

    @pytest.mark.asyncio
    async def test_client_error_becomes_generation_error(self, ollama_client: MagicMock) -> None:
        ollama_client.chat.side_effect = ConnectionError("ollama is down")

        with pytest.raises(GenerationError) as exc_info:
            await generate_text("prompt")

        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_empty_completion_is_an_error(self, ollama_client: MagicMock) -> None:
        ollama_client.chat.return_value = _ollama_reply("<think>hmm</think>   ")

        with pytest.raises(GenerationError):
            await generate_text("prompt")

    @pytest.mark.asyncio
    async def test_openai_provider(
        self, openai_client: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(services, "LLM_PROVIDER", "openai")
        choice = MagicMock()
        choice.message.content = "From GPT"
        openai_client.chat.completions.create.return_value = MagicMock(choices=[choice])

        assert await generate_text("prompt") == "From GPT"
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == services.OPENAI_CHAT_MODEL
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]


class TestParseTopics:

    def test_splits_and_strips(self) -> None:
        assert parse_topics("Nutrition, Sleep,Exercise ,  Mental Health, Hydration") == [
            "Nutrition", "Sleep", "Exercise", "Mental Health", "Hydration"
        ]

    def test_drops_blank_segments_and_quotes(self) -> None:
        assert parse_topics('"EV batteries", , Self-driving cars.,') == [
            "EV batteries", "Self-driving cars"
        ]

    def test_abbreviations_keep_their_periods(self) -> None:
        assert parse_topics("U.S. road trips, A.I., Electric cars.") == [
            "U.S. road trips", "A.I.", "Electric cars"
        ]

    def test_keeps_at_most_limit(self) -> None:
        assert parse_topics("a, b, c, d, e, f, g") == ["a", "b", "c", "d", "e"]

    def test_no_commas_gives_single_topic(self) -> None:
        assert parse_topics("Only one idea") == ["Only one idea"]


class TestGenerateTopics:

    @pytest.mark.asyncio
    async def test_uses_topics_prompt(self, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = AsyncMock(return_value="Nutrition, Sleep, Exercise, Mental Health, Hydration")
        monkeypatch.setattr(services, "generate_text", fake)

        topics = await generate_topics("Health")

        fake.assert_awaited_once_with(
            "Generate 5 podcast topics about Health. Return as comma-separated list."
        )
        assert len(topics) == 5

    @pytest.mark.asyncio
    async def test_no_usable_topic_is_an_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(services, "generate_text", AsyncMock(return_value=", ,"))

        with pytest.raises(GenerationError):
            await generate_topics("Health")

    @pytest.mark.asyncio
    async def test_generate_script_uses_script_prompt(self, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = AsyncMock(return_value="Welcome to today's episode")
        monkeypatch.setattr(services, "generate_text", fake)

        assert await generate_script("Exercise", "Health") == "Welcome to today's episode"
        fake.assert_awaited_once_with(script_prompt("Exercise", "Health"))


class TestSynthesizeSpeech:

    @pytest.mark.asyncio
    async def test_returns_audio_bytes(self, openai_client: MagicMock) -> None:
        openai_client.audio.speech.create.return_value = MagicMock(content=b"ID3audio")

        assert await synthesize_speech("Script text") == b"ID3audio"
        openai_client.audio.speech.create.assert_awaited_once_with(
            model=services.TTS_MODEL,
            voice=services.TTS_VOICE,
            input="Script text"
        )

    @pytest.mark.asyncio
    async def test_failure_becomes_generation_error(self, openai_client: MagicMock) -> None:
        openai_client.audio.speech.create.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(GenerationError):
            await synthesize_speech("Script text")

    @pytest.mark.asyncio
    async def test_empty_payload_is_an_error(self, openai_client: MagicMock) -> None:
        openai_client.audio.speech.create.return_value = MagicMock(content=b"")

        with pytest.raises(GenerationError):
            await synthesize_speech("Script text")


class TestTemporaryAudioFile:

    def test_file_exists_inside_and_is_removed_after(self, audio_dir: Path) -> None:
        with temporary_audio_file(1, b"ID3data") as path:
            assert path.parent == audio_dir
            assert path.suffix == ".mp3"
            assert path.read_bytes() == b"ID3data"

        assert not path.exists()
        assert list(audio_dir.iterdir()) == []

    def test_file_is_removed_when_body_raises(self, audio_dir: Path) -> None:
        with pytest.raises(RuntimeError):
            with temporary_audio_file(1, b"ID3data") as path:
                raise RuntimeError("upload failed")

        assert not path.exists()

    def test_unwritable_dir_is_a_generation_error(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(services, "AUDIO_DIR", str(tmp_path / "missing"))

        with pytest.raises(GenerationError):
            with temporary_audio_file(1, b"ID3data"):
                pass


class TestTruncateScript:

    def test_short_script_is_unchanged(self) -> None:
        script = "x" * 4000
        assert truncate_script(script) == script

    def test_long_script_is_cut_with_marker(self) -> None:
        result = truncate_script("y" * 4500)

        assert result == "y" * 4000 + "\n... [truncated]"
        assert len(result) <= services.SCRIPT_MAX_LEN + len(services.TRUNCATION_MARKER)
        assert len(result) < 4096

    def test_astral_characters_fit_telegram_limit(self) -> None:
        result = truncate_script("\U0001F3A7" * 5000)

        utf16_units = len(result.encode("utf-16-le")) // 2
        assert utf16_units <= services.TELEGRAM_MAX_LEN
        assert result.endswith(services.TRUNCATION_MARKER)
        assert result[:-len(services.TRUNCATION_MARKER)] == "\U0001F3A7" * 2000

    def test_cut_never_splits_a_surrogate_pair(self) -> None:
        result = truncate_script("a" + "\U0001F399" * 3000)

        head = result[:-len(services.TRUNCATION_MARKER)]
        assert head == "a" + "\U0001F399" * 1999
        assert len(result.encode("utf-16-le")) // 2 <= services.TELEGRAM_MAX_LEN

    def test_script_within_limit_in_utf16_units_is_unchanged(self) -> None:
        script = "\U0001F3A7" * 2000
        assert truncate_script(script) == script
