"""
Configuration settings
"""

import os
from dotenv import load_dotenv

load_dotenv()

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

# === Podcast Flow ===
CATEGORIES = ["Auto", "Health", "Travel", "ML", "Media"]
TOPIC_COUNT = 5
TOPIC_ROW_SIZE = 3  # First keyboard row, the rest go on the second

# === LLM Settings ===
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "ollama").lower()  # ollama | openai
LLM_MODEL = os.getenv("LLM_MODEL", "qwen3:8b")
OLLAMA_HOST = os.getenv("OLLAMA_HOST")
OPENAI_CHAT_MODEL = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "120"))

# === Speech Settings ===
TTS_MODEL = os.getenv("TTS_MODEL", "tts-1")
TTS_VOICE = os.getenv("TTS_VOICE", "alloy")
AUDIO_DIR = os.getenv("AUDIO_DIR")  # None = system temp dir
AUDIO_CAPTION = "Here's your podcast, enjoy!"

# === Telegram Limits ===
TELEGRAM_MAX_LEN = 4096
SCRIPT_MAX_LEN = 4000  # Stay safely below the hard limit
TRUNCATION_MARKER = "\n... [truncated]"
CALLBACK_DATA_MAX_BYTES = 64

# === Sessions ===
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "86400"))  # 0 = never
CONCURRENT_UPDATES = os.getenv("CONCURRENT_UPDATES", "false").lower() in (
    "1", "true", "yes"
)
