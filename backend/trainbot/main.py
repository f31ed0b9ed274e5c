import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager

import httpx
from dotenv import load_dotenv

load_dotenv()  # Load .env before any other imports that read env vars

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

logger = logging.getLogger("trainbot")
logging.basicConfig(level=logging.INFO)

# Global state populated during startup. "dataset" appears only once a
# complete GTFS snapshot has been built.
app_state: dict = {}


def _get_cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


async def reload_dataset(state: dict):
    """Build a fresh snapshot off the event loop, then publish it in one assignment."""
    from trainbot.dataset import load_dataset

    lock = state.setdefault("reload_lock", asyncio.Lock())
    async with lock:
        logger.info("Loading GTFS data...")
        dataset = await asyncio.to_thread(load_dataset, state.get("data_dir"))
        state["dataset"] = dataset
    logger.info(f"GTFS snapshot published: {dataset.store.counts()}")
    return dataset


async def _initial_load(state: dict) -> None:
    try:
        await reload_dataset(state)
    except asyncio.CancelledError:
        logger.info("GTFS load cancelled before publish")
        raise
    except Exception as e:
        logger.error(f"GTFS load failed, serving without data: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the GTFS load in the background and create shared clients."""
    from trainbot.favorites import FavoritesStore

    app_state.setdefault("reload_lock", asyncio.Lock())
    app_state["favorites"] = FavoritesStore()

    # Shared httpx client for connection pooling across BART API calls
    http_client = httpx.AsyncClient(
        timeout=30.0,
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
    )
    app_state["http_client"] = http_client

    load_task = asyncio.create_task(_initial_load(app_state))
    app_state["load_task"] = load_task

    yield

    logger.info("Shutting down...")
    if not load_task.done():
        load_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await load_task
    await http_client.aclose()
    logger.info("Shared HTTP client closed")


app = FastAPI(title="TrainBot API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from trainbot.routes import router  # noqa: E402

app.include_router(router, prefix="/api")
