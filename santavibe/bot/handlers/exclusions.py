from aiogram import Router, types
from aiogram.filters import Command

from santavibe.bot.utils import (
    GENERIC_ERROR_TEXT,
    NO_GAME_TEXT,
    SLOW_DOWN_TEXT,
    check_rate_limit,
    command_args,
    is_admin,
    log_handler_exception,
)
from santavibe.db import get_session, repo
from santavibe.services import game_flow

router = Router()

EXCLUDE_USAGE = "Usage: /exclude @alice @bob (or the numbers from /list, e.g. /exclude 1 3)"
UNEXCLUDE_USAGE = "Usage: /unexclude @alice @bob"


@router.message(Command("exclude"))
async def exclude_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "exclude"):
        await message.answer(SLOW_DOWN_TEXT)
        return

    if not await is_admin(message.bot, message.chat.id, message.from_user.id):
        await message.answer("Only group admins can manage exclusion rules.")
        return

    args = command_args(message.text)
    if len(args) != 2:
        await message.answer(EXCLUDE_USAGE)
        return

    try:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, message.chat.id)
            if not group:
                await message.answer(NO_GAME_TEXT)
                return

            first = game_flow.resolve_participant(session, group, args[0])
            second = game_flow.resolve_participant(session, group, args[1])
            if not first or not second:
                await message.answer("Both people must be participants of this Secret Santa.")
                return

            result = game_flow.add_exclusion(session, group, first, second, message.from_user.id)
            text = result.message
            if result.added:
                text = (
                    f"{game_flow.format_user_label(first)} and {game_flow.format_user_label(second)} "
                    "won't draw each other."
                )

        await message.answer(text)
    except Exception as exc:
        log_handler_exception("exclude", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_TEXT)


@router.message(Command("unexclude"))
async def unexclude_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "unexclude"):
        await message.answer(SLOW_DOWN_TEXT)
        return

    if not await is_admin(message.bot, message.chat.id, message.from_user.id):
        await message.answer("Only group admins can manage exclusion rules.")
        return

    args = command_args(message.text)
    if len(args) != 2:
        await message.answer(UNEXCLUDE_USAGE)
        return

    try:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, message.chat.id)
            if not group:
                await message.answer(NO_GAME_TEXT)
                return

            first = game_flow.resolve_participant(session, group, args[0])
            second = game_flow.resolve_participant(session, group, args[1])
            removed = bool(first and second) and game_flow.remove_exclusion(session, group, first, second)

        await message.answer("Exclusion rule removed." if removed else "No such exclusion rule.")
    except Exception as exc:
        log_handler_exception("unexclude", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_TEXT)


@router.message(Command("exclusions"))
async def exclusions_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "exclusions"):
        await message.answer(SLOW_DOWN_TEXT)
        return

    try:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, message.chat.id)
            if not group:
                await message.answer(NO_GAME_TEXT)
                return

            rules = game_flow.list_exclusions(session, group)
            lines = [
                f"{game_flow.format_user_label(rule.user1)} ✕ {game_flow.format_user_label(rule.user2)}"
                for rule in rules
            ]

        if not lines:
            await message.answer("No exclusion rules yet. Admins can add one with /exclude.")
            return
        await message.answer("Exclusion rules:\n" + "\n".join(lines))
    except Exception as exc:
        log_handler_exception("exclusions", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_TEXT)
