"""Initialize database tables and seed the default admin and rates"""
import asyncio
from taskbot.database import create_tables, engine
from taskbot.main import seed_defaults


async def init():
    await create_tables()
    print("Database tables created successfully.")
    await seed_defaults()
    print("Default admin and financial rates seeded.")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init())
