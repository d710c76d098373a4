from aiogram import Router

from santavibe.bot.handlers import exclusions, group_game, start

router = Router()
router.include_router(start.router)
router.include_router(group_game.router)
router.include_router(exclusions.router)
