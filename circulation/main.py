from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from circulation.core.config import LOG_FORMAT, LOG_LEVEL
from circulation.core.database import Base, engine, utcnow
from circulation.core.errors import CirculationError, StorageError
from circulation.api import routes

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger("circulation")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Creating database tables (if not present)...")
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="Library Circulation Service", lifespan=lifespan)
app.include_router(routes.router)


@app.exception_handler(CirculationError)
async def circulation_error_handler(request: Request, exc: CirculationError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Storage failure on {request.method} {request.url.path}", exc_info=exc)
    return await circulation_error_handler(request, StorageError("Storage error"))


@app.get("/health")
def health():
    return {"status": "ok", "time": utcnow().isoformat()}
