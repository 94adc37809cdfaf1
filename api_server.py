"""
FastAPI application for the TradeLedger portfolio service
Run with: gunicorn -c gunicorn_conf.py api_server:app
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, Type

import orjson
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse

load_dotenv()

from config import Config  # noqa: E402
from database import create_tables, verify_connection  # noqa: E402
from routes import account, admin, funds, market, positions  # noqa: E402
from routes.dependencies import ServiceContainer  # noqa: E402
from utils.exception_handler import (  # noqa: E402
    AuthenticationError, AuthorizationError, ConflictError, LedgerError,
    NotFoundError, PersistenceError, ValidationError,
)

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logging.getLogger('aiohttp').setLevel(logging.WARNING)
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# Most specific class first
ERROR_STATUS_CODES: Dict[Type[LedgerError], int] = {
    AuthenticationError: 401,
    AuthorizationError: 403,
    ValidationError: 422,
    NotFoundError: 404,
    ConflictError: 409,
    PersistenceError: 503,
}


class LedgerJSONResponse(ORJSONResponse):
    """orjson response that also renders Decimal and other non-native values as strings"""

    def render(self, content: Any) -> bytes:
        return orjson.dumps(content, default=str, option=orjson.OPT_NON_STR_KEYS)


def status_for(error: LedgerError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


def create_app(session_factory=None, market_data=None, init_database: bool = True) -> FastAPI:
    """
    Build the application.

    Tests pass their own session factory and market data client; production
    uses the module-level SessionLocal and creates tables on startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"🔧 Worker {os.getpid()} starting...")
        Config.log_environment_config()
        if init_database:
            Config.validate_configuration()
            bind = app.state.services.store.session_factory.kw.get("bind")
            if verify_connection(bind) and create_tables(bind):
                seeded = app.state.services.profiles.seed_role_assignments(Config.ADMIN_EMAILS)
                logger.info(f"✅ Startup complete ({seeded} admin role assignments seeded)")
            else:
                logger.error("❌ Database not ready at startup - requests will fail until it is reachable")
        yield
        logger.info(f"🔄 Worker {os.getpid()} shutting down...")

    app = FastAPI(
        title=f"{Config.PLATFORM_NAME} API",
        description="Simulated crypto portfolio with admin-approved fund ledger",
        default_response_class=LedgerJSONResponse,
        lifespan=lifespan,
    )
    app.state.services = ServiceContainer.build(session_factory, market_data=market_data)

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error(f"❌ API_ERROR: {request.method} {request.url.path} - {exc.error_code}: {exc.message}")
        else:
            logger.info(f"⚠️ API_REJECTED: {request.method} {request.url.path} - {exc.error_code}: {exc.message}")
        return LedgerJSONResponse(status_code=status_code, content=exc.to_dict())

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "service": Config.PLATFORM_NAME, "environment": Config.CURRENT_ENVIRONMENT}

    for module in (account, positions, funds, admin, market):
        app.include_router(module.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api_server:app", host="0.0.0.0", port=Config.PORT, log_level=Config.LOG_LEVEL.lower())
