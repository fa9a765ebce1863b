from fastapi import APIRouter

from ..core.validation import validate_search_text
from ..schemas.enhance import EnhancedQuery, EnhanceRequest
from ..services.query_enhancer import get_query_enhancer


router = APIRouter(prefix="/api/enhance-query", tags=["enhance"])


@router.post("", response_model=EnhancedQuery)
async def enhance_query(request: EnhanceRequest):
    query = validate_search_text(request.query) or ""
    return await get_query_enhancer().enhance(query)
