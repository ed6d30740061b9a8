"""FastAPI app entry."""

from __future__ import annotations

from fastapi import FastAPI

from gainsgate.adapters.callable.router import router as callable_router
from gainsgate.adapters.openai_compat.upstream import close_upstream_async_client
from gainsgate.config.settings import settings
from gainsgate.util.logger import logger


app = FastAPI(title=settings.app_name)
app.include_router(callable_router)


@app.get("/health")
def health() -> dict:
    logger.info("health check")
    return {"status": "ok"}


@app.on_event("shutdown")
async def shutdown_cleanup() -> None:
    await close_upstream_async_client()
