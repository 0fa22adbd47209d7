from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.endpoints import ApiEndpoints
from .auth.manager import AuthManager
from .chat.adapter import PlannerAdapter
from .chat.openai_adapter import OpenAIPlannerAdapter
from .conversation.router import ConversationRouter
from .conversation.session_store import SessionStore
from .observability.export import WorkbookAnalyticsExporter
from .observability.logging import get_logger, setup_logging
from .persistence.repository import Repository
from .persistence.sql_repository import SQLRepository
from .registry.config_loader import ConfigLoader
from .settings import Settings


logger = get_logger(__name__)


async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(
        status_code=exc.status_code, content=content, headers=exc.headers
    )


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[Repository] = None,
    planner: Optional[PlannerAdapter] = None,
) -> FastAPI:
    """Builds the Invocursor HTTP server.

    Args:
        settings: Server settings. Defaults to ``Settings.from_env()``.
        repository: Key and request log store. Defaults to SQL at
            ``settings.database_url``.
        planner: Language model adapter. Defaults to OpenAI.
    """
    settings = settings or Settings.from_env()
    repository = repository or SQLRepository(settings.database_url)
    planner = planner or OpenAIPlannerAdapter(
        model_name=settings.openai_model, api_key=settings.openai_api_key
    )

    config_loader = ConfigLoader(settings.configs_dir)
    conversation = ConversationRouter(
        planner=planner,
        config_loader=config_loader,
        exporter=WorkbookAnalyticsExporter(repository),
    )
    endpoints = ApiEndpoints(
        conversation=conversation,
        auth=AuthManager(repository, admin_secret=settings.admin_secret),
        repository=repository,
        config_loader=config_loader,
        planner=planner,
        session_store=SessionStore(),
    )

    app = FastAPI(title="Invocursor")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-RateLimit-Remaining",
            "X-RateLimit-Limit",
            "X-RateLimit-Tier",
        ],
    )
    app.add_exception_handler(HTTPException, _http_error)
    app.include_router(endpoints.router)

    app.state.settings = settings
    app.state.repository = repository
    app.state.endpoints = endpoints

    if not planner.is_configured:
        logger.warning("OPENAI_API_KEY is not set; planning requests will fail")
    return app


def main() -> None:
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    logger.info(
        "Starting Invocursor server",
        extra={
            "host": settings.host,
            "port": settings.port,
            "model": settings.openai_model,
            "configs_dir": settings.configs_dir,
        },
    )
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
