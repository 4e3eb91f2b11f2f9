"""
Main FastAPI application
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from taskbot.api import webhooks
from taskbot.api.webhooks import BotServices
from taskbot.config import get_settings
from taskbot.database import AsyncSessionLocal, create_tables, engine
from taskbot.models.financial import MARKETING_RATE, RENTAL_RATE, TAX_RATE
from taskbot.services.financial_service import FinancialService
from taskbot.services.reminder_service import start_reminder_scheduler
from taskbot.services.user_service import UserService
from taskbot.utils.logger import configure_root_logging

settings = get_settings()
configure_root_logging()
logger = logging.getLogger(__name__)


async def seed_defaults() -> None:
    """Default SuperAdmin and financial rates, created only when missing"""
    async with AsyncSessionLocal() as session:
        admin = await UserService(session).ensure_default_admin(
            settings.DEFAULT_ADMIN_USERNAME,
            settings.DEFAULT_ADMIN_EMAIL,
            settings.DEFAULT_ADMIN_WHATSAPP,
        )
        if admin:
            logger.info(f"Created default admin user '{admin.username}'")

        created = await FinancialService(session).ensure_default_rates({
            TAX_RATE: settings.DEFAULT_TAX_RATE,
            MARKETING_RATE: settings.DEFAULT_MARKETING_RATE,
            RENTAL_RATE: settings.DEFAULT_RENTAL_RATE,
        })
        if created:
            logger.info(f"Seeded {created} default financial rates")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    logger.info("Database tables created")

    await seed_defaults()

    bot = BotServices.from_settings(settings)
    app.state.bot = bot
    if not bot.classifier.is_available:
        logger.warning("ANTHROPIC_API_KEY not set - free text uses local rules only")

    reminder_task = asyncio.create_task(
        start_reminder_scheduler(AsyncSessionLocal, bot.whatsapp, settings.REMINDER_SWEEP_INTERVAL_MIN)
    )
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} started")

    yield

    reminder_task.cancel()
    try:
        await reminder_task
    except asyncio.CancelledError:
        pass
    await bot.cache.close()
    await engine.dispose()
    logger.info("Shutting down")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.include_router(webhooks.router, prefix="/api", tags=["WhatsApp"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME, "version": settings.APP_VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("taskbot.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
