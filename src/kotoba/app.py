import asyncio
import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import List, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import Settings, settings
from .database import init_db
from .errors import ErrorState, KotobaError, LoadError, SaveError
from .importer import WordSourceImporter
from .log_handler import SQLiteHandler
from .repository import WordSourceStore
from .router import router
from .sessions import SessionRegistry

ERROR_STATUS = {
    "load_error": 500,
    "save_error": 500,
    "serialize_error": 500,
    "decode_error": 422,
    "io_error": 400,
    "invalid_url": 400,
    "empty_source": 400,
    "network_error": 502,
    "http_status": 502,
    "empty_body": 502,
    "duplicate_name": 409,
    "invalid_transition": 409,
    "not_found": 404,
}

_installed_handlers: List[logging.Handler] = []


# --- Logging Setup ---
def setup_logging(app_settings: Settings):
    logger = logging.getLogger("kotoba")
    logger.setLevel(logging.INFO)

    # A new app replaces the handlers of the previous one.
    for handler in _installed_handlers:
        logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    if not os.path.exists(app_settings.LOG_DIR):
        os.makedirs(app_settings.LOG_DIR, exist_ok=True)
    log_path = os.path.join(app_settings.LOG_DIR, app_settings.LOG_FILE)
    file_handler = RotatingFileHandler(
        log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    )

    init_db(app_settings.db_path)
    db_handler = SQLiteHandler(app_settings.db_path)
    db_handler.setFormatter(logging.Formatter("%(message)s"))

    for handler in (file_handler, db_handler):
        logger.addHandler(handler)
        _installed_handlers.append(handler)
    # Also configure root logger to see logs from other libraries
    logging.basicConfig(level=logging.INFO)


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    store: WordSourceStore = app.state.store
    errors: ErrorState = app.state.errors
    try:
        await asyncio.to_thread(store.load)
    except LoadError as e:
        # Seeding now would overwrite the unreadable file.
        errors.report(e)
    else:
        try:
            await asyncio.to_thread(store.ensure_default_seed)
        except SaveError as e:
            errors.report(e)
    yield
    store.close()


async def handle_kotoba_error(request: Request, exc: KotobaError):
    request.app.state.errors.report(exc)
    body = {"error": exc.kind, "message": exc.message}
    status_code = getattr(exc, "status_code", None)
    if status_code is not None:
        body["status_code"] = status_code
    return JSONResponse(body, status_code=ERROR_STATUS.get(exc.kind, 400))


# --- App Factory ---
def create_app(
    app_settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    app_settings = app_settings or settings
    setup_logging(app_settings)
    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        debug=app_settings.DEBUG,
        lifespan=lifespan,
        root_path=app_settings.ROOT_PATH,
    )

    store = WordSourceStore(app_settings.sources_path)
    app.state.settings = app_settings
    app.state.store = store
    app.state.errors = ErrorState()
    app.state.sessions = SessionRegistry(app_settings.SESSION_TIMEOUT_MINUTES)
    app.state.importer = WordSourceImporter(
        store,
        timeout=app_settings.IMPORT_TIMEOUT_SECONDS,
        transport=transport,
    )

    app.add_exception_handler(KotobaError, handle_kotoba_error)
    app.include_router(router)

    return app
