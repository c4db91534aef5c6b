"""Main FastAPI application."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sparkcall.api import calls, chat, health
from sparkcall.api.errors import register_error_handlers
from sparkcall.core.logging import setup_logging
from sparkcall.db.database import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    await init_db()
    yield


app = FastAPI(
    title="Sparkcall",
    description="Call records and chat for the dating app",
    version="0.1.0",
    lifespan=lifespan,
)

register_error_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(calls.router, tags=["calls"])
app.include_router(chat.router, tags=["chat"])


@app.get("/")
async def root():
    return {"message": "Sparkcall API", "version": "0.1.0"}


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    from sparkcall.core.config import settings

    uvicorn.run("sparkcall.main:app", host=settings.host, port=settings.port)
