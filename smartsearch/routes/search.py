from fastapi import APIRouter, HTTPException, Depends, status
import logging

from ..cache.config import get_redis_client
from ..cache.manager import CacheManager
from ..models.search import SmartSearchRequest
from ..search.exceptions import InterpretationError
from ..search.models import RemoteResponse
from ..services.interpreter import SearchInterpreter

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/search", tags=["search"])

_interpreter = None


def get_interpreter() -> SearchInterpreter:
    """Shared interpreter, created on first use"""
    global _interpreter
    if _interpreter is None:
        _interpreter = SearchInterpreter(cache=CacheManager(get_redis_client()))
    return _interpreter


@router.post("/smart", response_model=RemoteResponse)
async def smart_search(
    request: SmartSearchRequest,
    interpreter: SearchInterpreter = Depends(get_interpreter)
):
    """Interpret a natural language contact query into filters and intents"""
    try:
        return await interpreter.interpret(
            request.query,
            request.known_organizations,
            request.known_sources
        )

    except InterpretationError as e:
        if e.status_code >= 500:
            logger.warning(f"Smart search interpretation failed ({e.status_code}): {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Smart search API error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Internal server error"
        )
