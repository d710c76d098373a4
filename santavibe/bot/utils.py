from __future__ import annotations

from typing import List

from aiogram.enums import ChatMemberStatus
from loguru import logger

from santavibe.services.rate_limit import rate_limiter

SLOW_DOWN_TEXT = "You're doing that too often. Please slow down."
GENERIC_ERROR_TEXT = "Something went wrong. Please try again later."
NO_GAME_TEXT = "This group is not currently active in Secret Santa."
DRAW_TOO_RESTRICTIVE_TEXT = "Couldn't find a valid draw. The exclusion rules may be too restrictive, see /exclusions."


async def is_admin(bot, chat_id: int, user_id: int) -> bool:
    try:
        member = await bot.get_chat_member(chat_id, user_id)
    except Exception as exc:  # pragma: no cover - network dependent
        logger.bind(chat_id=chat_id, user_id=user_id).warning(
            "Failed to check admin status: {error}", error=str(exc)
        )
        return False
    return member.status in {ChatMemberStatus.ADMINISTRATOR, ChatMemberStatus.CREATOR}


def is_group_chat(chat) -> bool:
    return chat.type in {"group", "supergroup"}


def check_rate_limit(user_id: int, action: str) -> bool:
    return rate_limiter.allow((user_id, action)).allowed


def command_args(text: str | None) -> List[str]:
    """Arguments after the command itself: ``/exclude @a @b`` -> ``["@a", "@b"]``."""
    if not text:
        return []
    return text.split()[1:]


def log_handler_exception(action: str, user_id: int | None, chat_id: int | None, error: Exception) -> None:
    logger.bind(action=action, user_id=user_id, chat_id=chat_id).exception(
        "Handler error: {error}", error=str(error)
    )
