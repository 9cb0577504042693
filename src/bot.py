"""
Podcast Bot - Entry Point and Handlers.

A Telegram bot that turns a picked category and topic into a short
podcast script and an audio rendition of it.
Uses Ollama (or OpenAI) for the script and OpenAI text-to-speech for audio.
"""

import logging
from typing import Optional

from telegram import BotCommand, CallbackQuery, Message, Update
from telegram.error import BadRequest, TelegramError
from telegram.ext import (
    Application,
    CommandHandler,
    CallbackQueryHandler,
    MessageHandler,
    filters,
    ContextTypes
)

from config import (
    TELEGRAM_BOT_TOKEN,
    CONCURRENT_UPDATES,
    AUDIO_CAPTION,
    LLM_PROVIDER
)
from models import Phase, UserSession
from storage import SessionStore
from services import (
    GenerationError,
    generate_topics,
    generate_script,
    synthesize_speech,
    temporary_audio_file,
    truncate_script
)
from keyboards import build_category_keyboard, build_topic_keyboard

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

SESSIONS_KEY = "sessions"

CATEGORY_PROMPT_TEXT = "Choose podcast category:"
TOPIC_PROMPT_TEXT = "Choose a specific topic:"
ERROR_TEXT = "Error generating content. Please try again."
NO_SCRIPT_TEXT = "No script available. Please create a podcast first!"
USE_BUTTONS_TEXT = (
    "👆 Please use the buttons above to make a selection,\n"
    "or send /new to start over."
)
STALE_BUTTON_TEXT = "Please use /new to start a podcast."

BOT_COMMANDS = [
    BotCommand("new", "Start new podcast creation"),
    BotCommand("text", "Get generated podcast text"),
]


def _sessions(context: ContextTypes.DEFAULT_TYPE) -> SessionStore:
    return context.bot_data[SESSIONS_KEY]


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /start command - Welcome message.
    """
    chat_id = update.effective_chat.id
    store = _sessions(context)

    await update.message.reply_text(
        "🎙️ Welcome to Podcast Bot!\n\n"
        "Pick a category and a topic, and I'll write a short podcast "
        "script and read it out for you.\n\n"
        "🔹 /new - Create a new podcast\n"
        "🔹 /text - Get the text of your last podcast\n"
        "🔹 /help - See all commands"
    )

    async with store.exclusive(chat_id):
        session = store.get_or_create(chat_id)
        await _handle_free_text(update.message, session)


async def help_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /help command - Show available commands.
    """
    await update.message.reply_text(
        "📖 *Podcast Bot - Help*\n\n"
        "*Commands:*\n"
        "/new - Start a new podcast\n"
        "/text - Get the generated podcast text\n"
        "/help - Show this help message\n\n"
        "*How it works:*\n"
        "1️⃣ Pick a category\n"
        "2️⃣ Pick one of the suggested topics\n"
        "3️⃣ Get your podcast as audio!\n\n"
        "💡 Tip: Use /new anytime to start over.",
        parse_mode="Markdown"
    )


async def new_session(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """
    Handle /new command - Start or restart podcast creation.

    This discards any existing session and offers the categories.
    """
    chat_id = update.effective_chat.id
    store = _sessions(context)

    async with store.exclusive(chat_id):
        session = store.reset(chat_id)
        await _offer_categories(update.message, session)


async def get_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /text command - Send the last generated script.
    """
    chat_id = update.effective_chat.id
    store = _sessions(context)

    async with store.exclusive(chat_id):
        script = store.get(chat_id).script_text

    if not script:
        await update.message.reply_text(NO_SCRIPT_TEXT)
        return

    text = truncate_script(script)
    try:
        await update.message.reply_text(text, parse_mode="Markdown")
    except BadRequest as e:
        # LLM output is not always valid Markdown
        logger.warning(f"Markdown rejected for {chat_id}: {e}")
        await update.message.reply_text(text)


async def handle_text(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """
    Handle text messages.
    Add handler AFTER command handlers to avoid conflicts.
    """
    chat_id = update.effective_chat.id
    store = _sessions(context)

    async with store.exclusive(chat_id):
        session = store.get_or_create(chat_id)
        logger.info(
            f"Text from {chat_id}: {update.message.text[:40]}... "
            f"(phase: {session.phase.value})"
        )
        await _handle_free_text(update.message, session)


async def handle_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """
    Handle inline buttons (callback queries).

    Callback data is the plain label of the chosen category or topic;
    what it means depends on the session phase. Every query is answered
    exactly once.
    """
    query = update.callback_query
    chat_id = update.effective_chat.id
    data = query.data or ""
    store = _sessions(context)

    async with store.exclusive(chat_id):
        session = store.get_or_create(chat_id)

        logger.info(
            f"Callback from {chat_id}: {data} "
            f"(phase: {session.phase.value})"
        )

        if session.phase == Phase.CATEGORY:
            await _answer(query)
            await _handle_category_selection(query.message, session, data)
        elif session.phase == Phase.TOPIC:
            await _answer(query)
            await _handle_topic_selection(query.message, session, data)
        else:
            await _answer(query, STALE_BUTTON_TEXT, show_alert=True)


async def _answer(
    query: CallbackQuery, text: Optional[str] = None, show_alert: bool = False
) -> None:
    """
    Answer a callback query. A query that waited behind a long generation
    may be too old to answer; the selection is still processed.
    """
    try:
        await query.answer(text, show_alert=show_alert)
    except BadRequest as e:
        logger.warning(f"Could not answer callback {query.id}: {e}")


async def _handle_free_text(message: Message, session: UserSession) -> None:
    if session.phase == Phase.INITIAL:
        await _offer_categories(message, session)
    else:
        await message.reply_text(USE_BUTTONS_TEXT)


async def _offer_categories(message: Message, session: UserSession) -> None:
    """
    Show the category keyboard and wait for a category.
    """
    session.phase = Phase.CATEGORY
    session.touch()

    await message.reply_text(
        CATEGORY_PROMPT_TEXT,
        reply_markup=build_category_keyboard()
    )


async def _handle_category_selection(
    message: Message, session: UserSession, category: str
) -> None:
    """
    Generate topics for the chosen category and show them.

    The category is only recorded once topics are available, so a failed
    call leaves the session as it was.
    """
    if not category.strip():
        logger.warning(f"Empty category from {session.chat_id}")
        await _send_error(message, session)
        return

    try:
        topics = await generate_topics(category)
    except GenerationError as e:
        logger.error(f"Error generating topics for {category}: {e}")
        await _send_error(message, session)
        return

    session.category = category
    session.phase = Phase.TOPIC
    session.touch()

    await message.reply_text(
        TOPIC_PROMPT_TEXT,
        reply_markup=build_topic_keyboard(topics)
    )

    logger.info(f"Chat {session.chat_id} picked category {category}")


async def _handle_topic_selection(
    message: Message, session: UserSession, topic: str
) -> None:
    """
    Generate the script for the chosen topic, then deliver it as audio.
    """
    if not topic.strip():
        logger.warning(f"Empty topic from {session.chat_id}")
        await _send_error(message, session)
        return

    try:
        script = await generate_script(topic, session.category)
    except GenerationError as e:
        logger.error(f"Error generating script for {topic}: {e}")
        await _send_error(message, session)
        return

    session.topic = topic
    session.script_text = script
    session.touch()

    try:
        audio = await synthesize_speech(script)
        await _send_audio(message, session.chat_id, audio)
    except (GenerationError, TelegramError) as e:
        logger.error(f"Error delivering audio for {topic}: {e}")
        await _send_error(message, session)
        return

    logger.info(f"Podcast on {topic} delivered to {session.chat_id}")


async def _send_audio(message: Message, chat_id: int, audio: bytes) -> None:
    """
    Upload audio from a temporary file that is removed afterwards.
    """
    with temporary_audio_file(chat_id, audio) as path:
        with path.open("rb") as audio_file:
            await message.reply_audio(
                audio=audio_file,
                caption=AUDIO_CAPTION,
                filename="podcast.mp3"
            )


async def _send_error(message: Message, session: UserSession) -> None:
    await message.reply_text(ERROR_TEXT)
    await _offer_categories(message, session)


async def error_handler(
    update: object, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Log errors."""
    logger.error(f"Update {update} caused error: {context.error}")


async def post_init(application: Application) -> None:
    """Register the command menu shown by Telegram clients."""
    try:
        await application.bot.set_my_commands(BOT_COMMANDS)
    except TelegramError as e:
        logger.error(f"Error setting commands: {e}")


def build_application(
    token: str, store: Optional[SessionStore] = None
) -> Application:
    """
    Build the Telegram application with all handlers registered.
    """
    app = (
        Application.builder()
        .token(token)
        .concurrent_updates(CONCURRENT_UPDATES)
        .post_init(post_init)
        .build()
    )
    app.bot_data[SESSIONS_KEY] = store if store is not None else SessionStore()

    # Register handlers - order matters!
    app.add_handler(CommandHandler("start", start))
    app.add_handler(CommandHandler("new", new_session))
    app.add_handler(CommandHandler("text", get_text))
    app.add_handler(CommandHandler("help", help_cmd))
    app.add_handler(CallbackQueryHandler(handle_callback))
    app.add_handler(
        MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text)
    )

    app.add_error_handler(error_handler)
    return app


def main() -> None:
    if not TELEGRAM_BOT_TOKEN:
        raise ValueError(
            "TELEGRAM_BOT_TOKEN not set! "
            "Create a .env file with your bot token."
        )

    app = build_application(TELEGRAM_BOT_TOKEN)

    # Start polling
    logger.info(f"🤖 Podcast Bot starting (LLM provider: {LLM_PROVIDER})...")
    print("\n🤖 Bot is running! Press Ctrl+C to stop.\n")

    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
