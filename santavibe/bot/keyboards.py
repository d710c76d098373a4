from aiogram.utils.keyboard import InlineKeyboardBuilder

JOIN_CALLBACK = "join"
CONFIRM_DRAW_CALLBACK = "confirm_draw"
CANCEL_DRAW_CALLBACK = "cancel_draw"


def join_keyboard():
    keyboard = InlineKeyboardBuilder()
    keyboard.button(text="Join Secret Santa!", callback_data=JOIN_CALLBACK)
    return keyboard.as_markup()


def confirm_draw_keyboard():
    keyboard = InlineKeyboardBuilder()
    keyboard.button(text="Yes, draw now!", callback_data=CONFIRM_DRAW_CALLBACK)
    keyboard.button(text="Cancel", callback_data=CANCEL_DRAW_CALLBACK)
    return keyboard.as_markup()
