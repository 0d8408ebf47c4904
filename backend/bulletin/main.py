"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from bulletin.config import settings
from bulletin.database import async_session, engine, get_db
from bulletin.models import Base
from bulletin.services.errors import BoardError, InvalidInputError, InvalidOperationError, NotFoundError
from bulletin.services.expiry_sweeper import ExpirySweeper
from bulletin.services.notifier import notice_notifier

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, run the expiry sweeper in the background."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sweeper = None
    if settings.EXPIRY_SWEEP_ENABLED:
        sweeper = ExpirySweeper(async_session, settings.EXPIRY_SWEEP_INTERVAL_SECONDS)
        sweeper.start()

    yield

    # Cleanup
    if sweeper is not None:
        await sweeper.stop()
    await notice_notifier.drain()
    await engine.dispose()


app = FastAPI(
    title="Bulletin Board API",
    version="1.0.0",
    description="Backend API for board posts, notices, comments and attachments.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    # Browsers reject credentialed responses for a wildcard origin
    allow_credentials="*" not in origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (InvalidOperationError, 400),
    (InvalidInputError, 400),
)


@app.exception_handler(BoardError)
async def board_error_handler(request: Request, exc: BoardError):
    status_code = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 400)
    logger.info(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
    return JSONResponse(status_code=status_code, content={"error": exc.code, "detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "detail": "Internal server error"},
    )


@app.get("/api/health")
async def health_check():
    """Verify API and database connectivity."""
    try:
        async for db in get_db():
            await db.execute(text("SELECT 1"))
            return {"status": "ok", "database": "connected"}
    except Exception as e:
        return {"status": "error", "database": str(e)}


# Register routers
from bulletin.routes.posts import router as posts_router
from bulletin.routes.notices import router as notices_router
from bulletin.routes.comments import router as comments_router
from bulletin.routes.files import router as files_router
app.include_router(posts_router)
app.include_router(notices_router)
app.include_router(comments_router)
app.include_router(files_router)
