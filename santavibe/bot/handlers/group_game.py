from __future__ import annotations

from aiogram import F, Router, types
from aiogram.enums import ParseMode
from aiogram.filters import Command
from loguru import logger

from santavibe.bot.keyboards import CANCEL_DRAW_CALLBACK, CONFIRM_DRAW_CALLBACK, JOIN_CALLBACK, confirm_draw_keyboard
from santavibe.bot.utils import (
    DRAW_TOO_RESTRICTIVE_TEXT,
    GENERIC_ERROR_TEXT,
    NO_GAME_TEXT,
    SLOW_DOWN_TEXT,
    check_rate_limit,
    is_admin,
    is_group_chat,
    log_handler_exception,
)
from santavibe.core.config import Settings
from santavibe.db import GroupStatus, get_session, repo
from santavibe.services import DrawError, DrawValidationError, GenerationExhaustedError, game_flow

router = Router()


@router.callback_query(F.data == JOIN_CALLBACK)
async def join_callback_handler(query: types.CallbackQuery) -> None:
    if not check_rate_limit(query.from_user.id, "join"):
        await query.answer(SLOW_DOWN_TEXT, show_alert=True)
        return

    try:
        with get_session() as session:
            result = game_flow.join_group(
                session,
                query.from_user.id,
                query.from_user.username,
                query.from_user.first_name,
                query.from_user.last_name,
                query.message.chat.id,
                query.message.chat.title,
            )
            user_label = game_flow.format_user_label(result.user)

        await query.answer(result.message, show_alert=True)
        if result.added:
            await query.message.bot.send_message(
                query.message.chat.id,
                f"{user_label} joined the Secret Santa game!",
            )
    except Exception as exc:
        log_handler_exception("join", query.from_user.id, query.message.chat.id, exc)
        await query.answer("Error joining the Secret Santa game.", show_alert=True)


@router.message(Command("leave"))
async def leave_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "leave"):
        await message.answer(SLOW_DOWN_TEXT)
        return

    try:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, message.chat.id)
            if not group:
                await message.answer(NO_GAME_TEXT)
                return
            result = game_flow.leave_group(session, group, message.from_user.id)
        await message.answer(result.message)
    except Exception as exc:
        log_handler_exception("leave", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_TEXT)


@router.message(Command("list"))
async def list_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "list"):
        await message.answer(SLOW_DOWN_TEXT)
        return

    try:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, message.chat.id)
            if not group:
                await message.answer(NO_GAME_TEXT)
                return

            participants = game_flow.list_participants(session, group)
            if not participants:
                await message.answer("No participants found in this Secret Santa game.")
                return

            lines = []
            for number, user in enumerate(participants, start=1):
                suffix = " ✓" if user.has_private_chat else ""
                lines.append(f"{number}. {game_flow.format_user_label(user)}{suffix}")

            message_text = "Participants in Secret Santa:\n" + "\n".join(lines)
            if any(not user.has_private_chat for user in participants):
                message_text += (
                    "\n\nNote: Users without a ✓ need to start a private chat with the bot by sending /start."
                )
            if group.status == GroupStatus.LOCKED:
                message_text += "\n\nJoining is locked."

        await message.answer(message_text)
    except Exception as exc:
        log_handler_exception("list", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_TEXT)


@router.message(Command("check"))
async def check_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "check"):
        await message.answer(SLOW_DOWN_TEXT)
        return

    try:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, message.chat.id)
            if not group:
                await message.answer(NO_GAME_TEXT)
                return
            result = game_flow.check_draw(session, group)
            errors = game_flow.describe_draw_errors(session, group, result.errors)

        lines = [
            f"Participants: {result.participant_count}",
            f"Exclusion rules: {result.exclusion_count}",
        ]
        if result.can_draw:
            lines.append("")
            lines.append("A draw looks possible. An admin can run it with /draw.")
        for error in errors:
            lines.append(f"✗ {error}")
        for warning in result.warnings:
            lines.append(f"! {warning}")

        await message.answer("\n".join(lines))
    except Exception as exc:
        log_handler_exception("check", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_TEXT)


@router.message(Command("draw", "end"))
async def draw_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "draw"):
        await message.answer(SLOW_DOWN_TEXT)
        return

    if not is_group_chat(message.chat):
        await message.answer("This command can only be used in a group chat.")
        return

    if not await is_admin(message.bot, message.chat.id, message.from_user.id):
        await message.answer("Only group admins can run the draw.")
        return

    try:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, message.chat.id)
            if not group:
                await message.answer(NO_GAME_TEXT)
                return
            if group.status == GroupStatus.ASSIGNED:
                await message.answer("Secret Santa has already been drawn for this group.")
                return

        await message.answer(
            "Are you sure you want to run the draw? Nobody can join or change exclusions afterwards.",
            reply_markup=confirm_draw_keyboard(),
        )
    except Exception as exc:
        log_handler_exception("draw", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_TEXT)


@router.callback_query(F.data == CANCEL_DRAW_CALLBACK)
async def cancel_draw_callback_handler(query: types.CallbackQuery) -> None:
    await query.answer("Draw cancelled.")
    await query.message.delete_reply_markup()


@router.callback_query(F.data == CONFIRM_DRAW_CALLBACK)
async def confirm_draw_callback_handler(query: types.CallbackQuery, settings: Settings) -> None:
    if not check_rate_limit(query.from_user.id, "confirm_draw"):
        await query.answer(SLOW_DOWN_TEXT, show_alert=True)
        return

    if not await is_admin(query.message.bot, query.message.chat.id, query.from_user.id):
        await query.answer("Only group admins can run the draw.", show_alert=True)
        return

    try:
        result = await game_flow.run_draw(
            query.message.chat.id,
            max_attempts=settings.draw_max_attempts,
            timeout=settings.draw_timeout,
        )
        if result is None:
            await query.answer(NO_GAME_TEXT, show_alert=True)
            return
        participants = {participant.id: participant for participant in result.participants}

        for giver_id, receiver_id in result.assignments.items():
            giver = participants[giver_id]
            receiver_label = game_flow.format_user_label(participants[receiver_id])
            try:
                await query.message.bot.send_message(
                    giver.telegram_id,
                    f"Secret Santa: You're giving a gift to {receiver_label}!",
                    parse_mode=ParseMode.HTML,
                )
            except Exception as exc:  # pragma: no cover - network dependent
                logger.bind(user_id=giver.telegram_id).warning(
                    "Failed to send assignment DM: {error}", error=str(exc)
                )

        await query.answer("Secret Santa draw completed!", show_alert=True)
        await query.message.delete_reply_markup()
        await query.message.bot.send_message(
            query.message.chat.id,
            "Secret Santa draw completed! Check your private messages.",
        )
    except DrawValidationError as exc:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, query.message.chat.id)
            reasons = game_flow.describe_draw_errors(session, group, exc.reasons)
        await query.answer("\n".join(reasons)[:200], show_alert=True)
    except (GenerationExhaustedError, game_flow.DrawTimeoutError):
        await query.answer(DRAW_TOO_RESTRICTIVE_TEXT, show_alert=True)
    except DrawError as exc:
        await query.answer(str(exc)[:200], show_alert=True)
    except Exception as exc:
        log_handler_exception("confirm_draw", query.from_user.id, query.message.chat.id, exc)
        await query.answer(GENERIC_ERROR_TEXT, show_alert=True)


@router.message(Command("mysanta"))
async def my_santa_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "mysanta"):
        await message.answer(SLOW_DOWN_TEXT)
        return

    if not is_group_chat(message.chat):
        await message.answer("Send /mysanta in the group chat and I'll remind you privately.")
        return

    try:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, message.chat.id)
            user = repo.get_user_by_telegram_id(session, message.from_user.id)
            if not group or not user:
                await message.answer(NO_GAME_TEXT)
                return
            recipient = game_flow.get_recipient(session, group, user)
            if not recipient:
                await message.answer("There is no draw result for you in this group yet.")
                return
            recipient_label = game_flow.format_user_label(recipient)
            group_title = group.title or "your group"

        await message.bot.send_message(
            message.from_user.id,
            f"Reminder for {group_title}: you're giving a gift to {recipient_label}!",
        )
    except Exception as exc:
        log_handler_exception("mysanta", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_TEXT)


@router.message(Command("lock"))
async def lock_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "lock"):
        await message.answer(SLOW_DOWN_TEXT)
        return

    if not await is_admin(message.bot, message.chat.id, message.from_user.id):
        await message.answer("Only group admins can lock the Secret Santa.")
        return

    try:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, message.chat.id)
            if not group:
                await message.answer(NO_GAME_TEXT)
                return
            locked = game_flow.lock_group(session, group)

        await message.answer("Secret Santa is now locked." if locked else "Secret Santa is already locked or drawn.")
    except Exception as exc:
        log_handler_exception("lock", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_TEXT)


@router.message(Command("unlock"))
async def unlock_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "unlock"):
        await message.answer(SLOW_DOWN_TEXT)
        return

    if not await is_admin(message.bot, message.chat.id, message.from_user.id):
        await message.answer("Only group admins can unlock the Secret Santa.")
        return

    try:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, message.chat.id)
            if not group:
                await message.answer(NO_GAME_TEXT)
                return
            unlocked = game_flow.unlock_group(session, group)

        await message.answer("Secret Santa is now open." if unlocked else "Secret Santa is not locked.")
    except Exception as exc:
        log_handler_exception("unlock", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_TEXT)


@router.message(Command("reset"))
async def reset_command_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "reset"):
        await message.answer(SLOW_DOWN_TEXT)
        return

    if not await is_admin(message.bot, message.chat.id, message.from_user.id):
        await message.answer("Only group admins can reset the Secret Santa.")
        return

    try:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, message.chat.id)
            if not group:
                await message.answer(NO_GAME_TEXT)
                return
            game_flow.reset_group(session, group)
        await message.answer("Secret Santa has been reset. Participants and exclusions are kept, the draw is cleared.")
    except Exception as exc:
        log_handler_exception("reset", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_TEXT)
