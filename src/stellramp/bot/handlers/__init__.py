"""Bot handlers module."""

from aiogram import Router

from stellramp.bot.handlers import anchor, start


def setup_routers() -> Router:
    """Create and configure all routers."""
    main_router = Router()

    # Register all routers
    main_router.include_router(start.router)
    main_router.include_router(anchor.router)

    return main_router
