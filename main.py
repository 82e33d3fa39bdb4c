from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from smartsearch import __version__
from smartsearch.config import SearchConfig
from smartsearch.cache.config import get_redis_client
from smartsearch.cache.manager import CacheManager
from smartsearch.routes.search import router as search_router
import os
import logging

# Configure logging
logging.basicConfig(level=getattr(logging, SearchConfig.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Smart Search API",
    version=__version__,
    description="Natural language interpretation for CRM contact search"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        os.getenv("FRONTEND_URL", "")
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(search_router)


@app.on_event("startup")
async def startup_event():
    """Check optional services on startup"""
    if get_redis_client():
        logger.info("Redis connection established")
    else:
        logger.warning("Redis not available - cache disabled")

    if not SearchConfig.has_openai_key():
        logger.warning("OPENAI_API_KEY not configured - smart search will answer 503")


@app.get("/")
def root():
    return {
        "message": "Smart Search API",
        "version": __version__,
        "status": "running",
        "description": "Natural language interpretation for CRM contact search"
    }


@app.get("/health")
def health_check():
    """Health check endpoint for monitoring"""
    cache = CacheManager(get_redis_client())

    return {
        "status": "healthy",
        "cache": cache.health_check(),
        "version": __version__,
        "features": {
            "interpretation": SearchConfig.has_openai_key(),
            "caching": cache.enabled
        }
    }
