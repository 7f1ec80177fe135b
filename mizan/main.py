"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mizan import __version__
from mizan.config import get_settings
from mizan.errors import (
    AuthenticationError,
    ConditionParseError,
    ExtractionError,
    MizanError,
    NotFoundError,
    ValidationError,
)
from mizan.logging import configure_logging, get_logger
from mizan.rules.router import get_service, router as rules_router
from mizan.storage import init_db


logger = get_logger(__name__)

ERROR_STATUS = {
    ValidationError: 422,
    ConditionParseError: 422,
    NotFoundError: 404,
    AuthenticationError: 401,
    ExtractionError: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    logger.info("starting", app_name=settings.app_name, version=__version__)

    init_db()
    service = get_service()
    logger.info(
        "rules_loaded",
        rules=len(service.store),
        invalid=len(service.store.invalid_rules()),
        decisions=len(service.decisions),
    )

    yield

    logger.info("shutting_down")


async def handle_mizan_error(request: Request, exc: MizanError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), 500)
    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code, message=exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_response().model_dump())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Rule-based decision engine with traceable approve/reject/review outcomes",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(MizanError, handle_mizan_error)
    app.include_router(rules_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "endpoints": {
                "rules": "/api/rules - Rule CRUD",
                "decide": "/api/decide - Evaluate facts against active rules",
                "decisions": "/api/decisions - Decision audit log",
                "conflicts": "/api/conflicts - Contradictory and duplicate rules",
                "extract": "/api/extract - Rule candidates from policy text",
                "demo": "/api/demo/load, /api/demo/reset - Demo rule pack",
            },
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=3456)
