# backend/sessionbook/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import settings
from .database import init_db
from .redis_client import redis_client
from .routers import blackout_periods, bookings, ledger, slots, users
from .services.errors import BookingError

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Session booking API started")
    yield


app = FastAPI(title="Session Booking API", lifespan=lifespan)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
def health():
    try:
        redis_ok = bool(redis_client.ping())
    except Exception as e:
        logger.warning(f"Redis ping failed: {e}")
        redis_ok = False
    return {"status": "ok", "redis": redis_ok}


app.include_router(users.router)
app.include_router(bookings.router)
app.include_router(slots.router)
app.include_router(blackout_periods.router)
app.include_router(ledger.router)
