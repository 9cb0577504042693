"""
Services for Podcast Bot.

Handles external API calls:
- Ollama (or OpenAI chat) for topic and script generation
- OpenAI text-to-speech for the audio rendition
"""

import logging
import os
import re
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ollama import AsyncClient
from openai import AsyncOpenAI

from config import (
    OPENAI_API_KEY,
    LLM_PROVIDER,
    LLM_MODEL,
    OLLAMA_HOST,
    OPENAI_CHAT_MODEL,
    REQUEST_TIMEOUT,
    TTS_MODEL,
    TTS_VOICE,
    AUDIO_DIR,
    TOPIC_COUNT,
    SCRIPT_MAX_LEN,
    TRUNCATION_MARKER,
    TELEGRAM_MAX_LEN
)

logger = logging.getLogger(__name__)

_ollama_client: Optional[AsyncClient] = None
_openai_client: Optional[AsyncOpenAI] = None


class GenerationError(Exception):
    """Raised when the text or speech service fails for any reason."""


def _ollama() -> AsyncClient:
    global _ollama_client
    if _ollama_client is None:
        _ollama_client = AsyncClient(host=OLLAMA_HOST, timeout=REQUEST_TIMEOUT)
    return _ollama_client


def _openai() -> AsyncOpenAI:
    global _openai_client
    if _openai_client is None:
        _openai_client = AsyncOpenAI(
            api_key=OPENAI_API_KEY,
            timeout=REQUEST_TIMEOUT
        )
    return _openai_client


def topics_prompt(category: str) -> str:
    return (
        f"Generate {TOPIC_COUNT} podcast topics about {category}. "
        "Return as comma-separated list."
    )


def script_prompt(topic: str, category: str) -> str:
    return (
        f"Create a 2-minute podcast script about {topic} in {category} "
        "category. Keep it under 400 words."
    )


async def generate_text(prompt: str) -> str:
    """
    Send a single user message to the configured LLM.

    Args:
        prompt: The full prompt text

    Returns:
        Completion text with any <think> block removed

    Raises:
        GenerationError: on any failure or an empty completion
    """
    logger.info(
        f"Generating text with {LLM_PROVIDER} ({len(prompt)} chars prompt)"
    )
    messages = [{"role": "user", "content": prompt}]

    try:
        if LLM_PROVIDER == "openai":
            response = await _openai().chat.completions.create(
                model=OPENAI_CHAT_MODEL,
                messages=messages
            )
            content = response.choices[0].message.content or ""
        else:
            response = await _ollama().chat(model=LLM_MODEL, messages=messages)
            content = response["message"]["content"] or ""
    except Exception as e:
        logger.error(f"Error generating text: {e}")
        raise GenerationError("Text generation failed") from e

    content = re.sub(
        r'<think>.*?</think>', '', content, flags=re.DOTALL
    ).strip()

    if not content:
        logger.warning("LLM returned an empty completion")
        raise GenerationError("Empty completion")

    logger.info(f"Generated text: {len(content)} chars")
    return content


def _clean_topic(part: str) -> str:
    topic = part.strip().strip('"\'').strip()
    # Drop a sentence period, but keep abbreviations such as "U.S."
    if topic.endswith(".") and "." not in topic[:-1]:
        topic = topic[:-1].rstrip()
    return topic


def parse_topics(content: str, limit: int = TOPIC_COUNT) -> list[str]:
    """
    Split a comma-separated LLM reply into topic labels.

    Surrounding quotes and a closing sentence period are trimmed, blank
    segments are dropped and at most `limit` topics are kept.
    """
    topics = []
    for part in content.split(","):
        topic = _clean_topic(part)
        if topic:
            topics.append(topic)
    return topics[:limit]


async def generate_topics(category: str) -> list[str]:
    """
    Ask the LLM for podcast topics in a category.

    Raises:
        GenerationError: if the call fails or yields no usable topic
    """
    content = await generate_text(topics_prompt(category))
    topics = parse_topics(content)

    if not topics:
        raise GenerationError(f"No topics parsed from: {content[:80]!r}")
    if len(topics) < TOPIC_COUNT:
        logger.warning(
            f"Expected {TOPIC_COUNT} topics for {category}, got {len(topics)}"
        )

    logger.info(f"Parsed {len(topics)} topics for {category}")
    return topics


async def generate_script(topic: str, category: str) -> str:
    """Generate a short podcast script for a topic."""
    return await generate_text(script_prompt(topic, category))


async def synthesize_speech(text: str) -> bytes:
    """
    Convert script text to speech.

    Returns:
        Encoded audio (mp3) bytes

    Raises:
        GenerationError: on any failure or an empty payload
    """
    logger.info(f"Synthesizing speech for {len(text)} chars")

    try:
        response = await _openai().audio.speech.create(
            model=TTS_MODEL,
            voice=TTS_VOICE,
            input=text
        )
        audio = response.content
    except Exception as e:
        logger.error(f"Error synthesizing speech: {e}")
        raise GenerationError("Speech synthesis failed") from e

    if not audio:
        raise GenerationError("Empty audio payload")

    logger.info(f"Synthesized {len(audio)} bytes of audio")
    return audio


@contextmanager
def temporary_audio_file(chat_id: int, audio: bytes) -> Iterator[Path]:
    """
    Write audio to a temporary .mp3 file and remove it on exit.

    Raises:
        GenerationError: if the file cannot be written
    """
    try:
        fd, name = tempfile.mkstemp(
            prefix=f"podcast_{chat_id}_", suffix=".mp3", dir=AUDIO_DIR
        )
    except OSError as e:
        logger.error(f"Error creating audio file: {e}")
        raise GenerationError("Could not create audio file") from e

    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(audio)
    except OSError as e:
        path.unlink(missing_ok=True)
        logger.error(f"Error writing audio file: {e}")
        raise GenerationError("Could not write audio file") from e

    try:
        yield path
    finally:
        path.unlink(missing_ok=True)
        logger.debug(f"Removed {path}")


def _utf16_len(text: str) -> int:
    """Length as Telegram counts it (UTF-16 code units)."""
    return len(text.encode("utf-16-le")) // 2


def truncate_script(script: str, max_len: int = SCRIPT_MAX_LEN) -> str:
    """
    Cut a script to fit in one Telegram message.

    Lengths are counted in UTF-16 code units, and the result including
    the truncation marker never exceeds TELEGRAM_MAX_LEN.
    """
    if _utf16_len(script) <= max_len:
        return script

    limit = min(max_len, TELEGRAM_MAX_LEN - _utf16_len(TRUNCATION_MARKER))
    # A surrogate pair split by the cut is dropped whole
    head = script.encode("utf-16-le")[:limit * 2].decode(
        "utf-16-le", errors="ignore"
    )
    return head + TRUNCATION_MARKER
