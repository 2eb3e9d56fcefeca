import asyncio
import logging
import sys

from aiohttp import web

from casamia.config import config
from casamia.cron import scheduler_loop
from casamia.database.core import AsyncSessionLocal, engine
from casamia.handlers import (
    common, users, tenants, apartments, beverages, cart, consumption, reservations, bills, maintenance, leave
)
from casamia.middlewares.auth import auth_middleware
from casamia.middlewares.db import db_session_middleware
from casamia.middlewares.error import error_middleware


async def start_scheduler(app: web.Application):
    app["scheduler"] = asyncio.create_task(scheduler_loop(app["session_factory"]))


async def stop_scheduler(app: web.Application):
    task = app.get("scheduler")
    if task:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


async def dispose_engine(app: web.Application):
    await engine.dispose()


def create_app(session_factory=None, with_scheduler: bool = False) -> web.Application:
    # Order: Outer -> Inner
    # 1. Error handler (wraps everything, turns exceptions into JSON)
    # 2. Auth (decodes the principal)
    # 3. DB session (provides session)
    app = web.Application(middlewares=[error_middleware, auth_middleware, db_session_middleware])
    app["session_factory"] = session_factory or AsyncSessionLocal

    for module in (common, users, tenants, apartments, beverages, cart, consumption, reservations, bills, maintenance, leave):
        app.add_routes(module.routes)

    if with_scheduler:
        app.on_startup.append(start_scheduler)
        app.on_cleanup.append(stop_scheduler)
    if session_factory is None:
        app.on_cleanup.append(dispose_engine)
    return app


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        stream=sys.stdout,
    )

    app = create_app(with_scheduler=config.SCHEDULER_ENABLED)
    logging.info(f"Starting Casamia API on {config.HOST}:{config.PORT}...")
    web.run_app(app, host=config.HOST, port=config.PORT, print=None)


if __name__ == "__main__":
    try:
        main()
    except (KeyboardInterrupt, SystemExit):
        logging.info("Server stopped.")
