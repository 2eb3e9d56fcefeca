from aiohttp import web


@web.middleware
async def db_session_middleware(request: web.Request, handler):
    session_factory = request.app["session_factory"]
    async with session_factory() as session:
        request["session"] = session
        try:
            response = await handler(request)
            # Services commit their own units of work; this flushes anything left over.
            # Business logic must raise exceptions to trigger rollback.
            await session.commit()
            return response
        except Exception:
            await session.rollback()
            raise
