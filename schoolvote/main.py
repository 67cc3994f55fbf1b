# main.py
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pymongo.database import Database
from pymongo.errors import PyMongoError

from .config import ALLOWED_ORIGINS
from .database.connection import ensure_indexes, get_database
from .routes.auth_routes import router as auth_router
from .routes.candidate_routes import router as candidate_router
from .routes.log_routes import router as log_router
from .routes.settings_routes import router as settings_router
from .routes.stats_routes import router as stats_router
from .routes.vote_routes import vote_router
from .routes.voter_routes import router as voter_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        ensure_indexes(get_database())
    except PyMongoError as e:
        logger.error(f"Failed to prepare MongoDB indexes: {e}")
        raise
    yield


app = FastAPI(title="School Election API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(voter_router)
app.include_router(candidate_router)
app.include_router(vote_router)
app.include_router(stats_router)
app.include_router(settings_router)
app.include_router(log_router)


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.get("/api/health", tags=["Root"])
def health_check(db: Database = Depends(get_database)):
    try:
        db.command("ping")
    except PyMongoError as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Database unavailable")
    return {"status": "healthy", "database": "MongoDB"}


@app.get("/", tags=["Root"])
def read_root():
    return {"message": "Welcome to the School Election API"}


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


def run() -> None:
    import uvicorn

    uvicorn.run("schoolvote.main:app", host="0.0.0.0", port=5000)
