import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from .config import settings
from .database import SessionLocal, engine
from .dependencies import build_availability_service
from .redis_client import redis_client
from .routers import availability, buffer_policy
from .services.availability import get_engine_config, load_active_appointments

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = build_availability_service(settings, get_engine_config(), redis_client)

    if engine is not None:
        db = SessionLocal()
        try:
            load_active_appointments(db, service.index)
        finally:
            db.close()
    else:
        logger.info("DATABASE_URL not set, index starts empty")

    app.state.availability = service
    yield


app = FastAPI(title="Staff Availability API", lifespan=lifespan)

app.include_router(availability.router)
app.include_router(buffer_policy.router)


@app.get("/health")
def health(request: Request):
    service = request.app.state.availability
    result = {"index": service.index.backend_name}
    if redis_client is not None:
        result["redis"] = redis_client.ping()
    return result
