"""
Inline keyboard builders for Podcast Bot.
"""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from config import CATEGORIES, TOPIC_ROW_SIZE, CALLBACK_DATA_MAX_BYTES


def _callback_data(label: str) -> str:
    """Fit a label into Telegram's callback_data byte limit."""
    encoded = label.encode("utf-8")
    if len(encoded) <= CALLBACK_DATA_MAX_BYTES:
        return label
    return encoded[:CALLBACK_DATA_MAX_BYTES].decode("utf-8", errors="ignore")


def build_category_keyboard(
    categories: list[str] = CATEGORIES
) -> InlineKeyboardMarkup:
    """
    Build keyboard for category selection.

    Returns:
        InlineKeyboardMarkup with all categories on a single row
    """
    buttons = [
        InlineKeyboardButton(cat, callback_data=_callback_data(cat))
        for cat in categories
    ]

    return InlineKeyboardMarkup([buttons])


def build_topic_keyboard(
    topics: list[str],
    row_size: int = TOPIC_ROW_SIZE
) -> InlineKeyboardMarkup:
    """
    Build keyboard for topic selection.

    The first `row_size` topics go on the first row and the remaining
    ones on a second row. Fewer topics simply give shorter rows.

    Args:
        topics: Topic labels, used as both text and callback data

    Returns:
        InlineKeyboardMarkup with one or two rows
    """
    buttons = [
        InlineKeyboardButton(topic, callback_data=_callback_data(topic))
        for topic in topics
    ]

    keyboard = [buttons[:row_size]]
    if buttons[row_size:]:
        keyboard.append(buttons[row_size:])

    return InlineKeyboardMarkup(keyboard)
