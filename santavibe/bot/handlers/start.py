from aiogram import Router, types
from aiogram.filters import CommandStart

from santavibe.bot.keyboards import join_keyboard
from santavibe.bot.utils import GENERIC_ERROR_TEXT, SLOW_DOWN_TEXT, check_rate_limit, log_handler_exception
from santavibe.db import get_session
from santavibe.services import game_flow

router = Router()

PRIVATE_WELCOME_TEXT = (
    "Hello! I'm your Secret Santa bot!\n\n"
    "Join a group that uses me and click the 'Join Secret Santa!' button.\n\n"
    "In the group, /list shows who is in, /exclude @a @b keeps two people from drawing each other "
    "and /check tells whether a draw is possible. An admin runs the draw with /draw, "
    "and I'll send you your recipient here."
)


@router.message(CommandStart())
async def command_start_handler(message: types.Message) -> None:
    if not check_rate_limit(message.from_user.id, "start"):
        await message.answer(SLOW_DOWN_TEXT)
        return

    try:
        if message.chat.type == "private":
            with get_session() as session:
                game_flow.register_private_chat(
                    session,
                    message.from_user.id,
                    message.from_user.username,
                    message.from_user.first_name,
                    message.from_user.last_name,
                )
            await message.answer(PRIVATE_WELCOME_TEXT)
            return

        await message.answer(
            "Hello! Please start a private chat with me first (send /start), "
            "then click the button below to join the Secret Santa game.",
            reply_markup=join_keyboard(),
        )
    except Exception as exc:
        log_handler_exception("start", message.from_user.id, message.chat.id, exc)
        await message.answer(GENERIC_ERROR_TEXT)
