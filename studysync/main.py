import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studysync.core.config import settings
from studysync.core.errors import StudySyncError
from studysync.routers import classes, misc, progress, study
from studysync.services.study_service import get_study_service

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("studysync")

if not settings.GEMINI_API_KEY:
    logger.warning("GEMINI_API_KEY is not set; summaries and materials will fail until it is configured")

@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if get_study_service.cache_info().currsize:
        await get_study_service().aclose()


app = FastAPI(title="StudySync API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(StudySyncError)
async def studysync_error_handler(request: Request, exc: StudySyncError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(misc.router)
app.include_router(classes.router)
app.include_router(study.router)
app.include_router(progress.router)

@app.get("/")
def root():
    return {"message": "StudySync API"}
