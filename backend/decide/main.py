# backend/decide/main.py
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.responses import Response

# rate limiting
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from decide.core.limiter import limiter
from decide.core.logger import configure_logging
from decide.core.settings import get_settings
from decide.db import RoomStore, init_db, make_engine
from decide.rooms import RetentionSweeper, RoomCoordinator
from decide.routers import vote

ALLOWED_ORIGINS = get_settings().allowed_origins

# The HTTP side only returns JSON; browsers must never frame or sniff it.
RESPONSE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}
HTTP_METHODS = ("GET", "POST", "OPTIONS")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger = configure_logging()

    engine = make_engine(settings.database_url)
    init_db(engine)
    coordinator = RoomCoordinator(
        RoomStore(engine),
        retention=timedelta(hours=settings.room_retention_hours),
    )
    sweeper = RetentionSweeper(coordinator, settings.cleanup_interval_seconds)
    app.state.coordinator = coordinator
    app.state.sweeper = sweeper
    sweeper.start()
    logger.info(f"decide started with database {settings.database_url}")
    try:
        yield
    finally:
        await sweeper.stop()
        engine.dispose()


app = FastAPI(title="Decide: ranked pairs voting", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=list(HTTP_METHODS),
    allow_headers=["content-type", "x-requested-with"],
    max_age=3600,
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = JSONResponse(
        status_code=429,
        content={"error": "too_many_requests", "detail": "Try again later."},
    )
    for header, value in (getattr(exc, "headers", {}) or {}).items():
        response.headers.setdefault(header, value)
    return response


# ---- HTTP guard: method and body checks, response headers ----
@app.middleware("http")
async def guard_http(request: Request, call_next):
    if request.method not in HTTP_METHODS:
        return JSONResponse(
            status_code=405,
            content={"detail": "Method Not Allowed"},
            headers={"Allow": ", ".join(HTTP_METHODS)},
        )
    if request.method == "POST":
        content_type = request.headers.get("content-type", "")
        if not content_type.lower().startswith("application/json"):
            return JSONResponse(
                status_code=415,
                content={"detail": "Room creation takes application/json"},
            )

    response: Response = await call_next(request)
    for header, value in RESPONSE_HEADERS.items():
        response.headers.setdefault(header, value)
    return response


# ---- Health endpoint (used by tests and curl) ----
@app.get("/health")
def health():
    return {"ok": True}


app.include_router(vote.router)
