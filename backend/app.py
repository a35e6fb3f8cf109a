import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI

from backend import config as app_config
from backend.demo import demo_llm
from backend.routes import router
from storyloom.generator import StoryGenerator
from storyloom.llm import LLM, HttpLLM
from storyloom.persistence import AutosaveScheduler, PersistenceManager
from storyloom.session import GameSession
from storyloom.storage import FileStore

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def make_llm(conn: dict[str, Any]) -> LLM:
    """Build the LLM client for the configured connection."""
    if conn["provider_format"] == "demo":
        return demo_llm()
    return HttpLLM(
        provider_url=conn["provider_url"],
        api_key=conn["api_key"],
        provider_format=conn["provider_format"],
        model=conn["model"],
        timeout=float(conn["timeout"]),
        temperature=conn["temperature"],
    )


def make_generator(data_dir: Path) -> StoryGenerator:
    """Build a generator from the current config (read on every start)."""
    config = app_config.get_config(data_dir)
    conn = config["llm_connection"]
    story = config["story"]
    return StoryGenerator(
        make_llm(conn),
        genre=story["genre"],
        min_characters=story["min_characters"],
        max_characters=story["max_characters"],
        prompt_template=story["prompt"],
        embed_schema=conn["provider_format"] != "gemini",
    )


def create_app(data_dir: Path | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    resolved.mkdir(parents=True, exist_ok=True)

    persistence = PersistenceManager(FileStore(resolved / "saves"))
    session = GameSession(persistence, lambda: make_generator(resolved))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        interval = float(app_config.get_config(resolved)["autosave_interval_seconds"])
        autosave = AutosaveScheduler(session, interval=interval)
        autosave.start()
        app.state.autosave = autosave
        try:
            yield
        finally:
            await autosave.stop()

    app = FastAPI(title="Storyloom", lifespan=lifespan)
    app.state.data_dir = resolved
    app.state.session = session
    app.include_router(router, prefix="/api")
    logger.info("storyloom data dir: %s", resolved)
    return app
