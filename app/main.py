import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from app.core.config import settings
from app.core.database import engine
from app.core.startup import startup_event, configure_logging
from app.models import Base
from app.api.parsing import parsing_router
from app.api.parsing.parsing import close_parsing_service
from app.middleware.rate_limit import limiter, rate_limit_exceeded_handler, create_rate_limit_middleware
from app.middleware.request_limits import create_request_limit_middleware

configure_logging()

Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup_event()
    yield
    await close_parsing_service()


app = FastAPI(
    title="Recipe Extraction API",
    description="Turns recipe pages and recipe photos into structured, vocabulary-resolved recipes",
    version="1.0.0",
    lifespan=lifespan
)

# Configure rate limiting
if settings.RATE_LIMIT_ENABLED:
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(create_request_limit_middleware())

rate_limit_middleware = create_rate_limit_middleware()
if rate_limit_middleware:
    app.add_middleware(rate_limit_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With"],
)

app.include_router(parsing_router, prefix="/api/recipes", tags=["parsing"])

# Downloaded step images
os.makedirs(settings.MEDIA_DIR, exist_ok=True)
app.mount(settings.MEDIA_URL_PREFIX, StaticFiles(directory=settings.MEDIA_DIR), name="media")

@app.get("/")
async def root():
    return {"message": "Recipe Extraction API"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}
