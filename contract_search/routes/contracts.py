import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.config import Config
from ..core.validation import validate_contract_id, validate_date_range, validate_search_text
from ..schemas.account import SearchLimitInfo
from ..schemas.contracts import (
    Contract,
    ContractDetail,
    ContractFilters,
    FilterOptions,
    SearchRequest,
    SearchResponse,
)
from ..services import contract_service, saved_service, usage_service
from ..services.auth_service import AuthUser
from ..services.query_enhancer import get_query_enhancer
from ..services.supabase_service import require_user_profile
from .deps import get_optional_user


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/contracts", tags=["contracts"])

MAX_BATCH_IDS = 100


def _check_search_allowed(user: Optional[AuthUser], counted: bool) -> Optional[dict]:
    if user is None:
        if not Config.ALLOW_ANONYMOUS_SEARCH:
            raise HTTPException(status_code=401, detail="Sign in to search contracts")
        return None
    profile = require_user_profile(user.id)
    if counted:
        usage_service.ensure_can_search(user.id, profile)
    return profile


def _run_search(filters: ContractFilters, extra_terms: list[str], user: Optional[AuthUser],
                profile: Optional[dict], counted: bool) -> SearchResponse:
    page = contract_service.get_contracts(filters, extra_terms)

    limit_info: Optional[SearchLimitInfo] = None
    saved_ids: list[str] = []
    if user is not None:
        if counted:
            usage_service.record_search(user.id, filters.search, page.total)
        limit_info = usage_service.get_search_limit_info(user.id, profile)
        saved_ids = saved_service.saved_contract_ids(user.id, [c.id for c in page.contracts])

    return SearchResponse(**page.model_dump(), saved_ids=saved_ids, limit_info=limit_info)


@router.post("/search", response_model=SearchResponse)
async def search_contracts(request: SearchRequest, user: Optional[AuthUser] = Depends(get_optional_user)):
    """Search the catalog.

    - Signed-in users: the first page of each search counts against the monthly allowance
    - enhance=true broadens the free-text predicate with model-suggested keywords and suppliers
    """
    search = validate_search_text(request.search)
    validate_date_range(request.date_start, request.date_end)
    filters = ContractFilters(**request.model_dump(exclude={"enhance", "search"}), search=search)
    counted = user is not None and filters.page == 1

    profile = await asyncio.to_thread(_check_search_allowed, user, counted)

    enhancement = None
    extra_terms: list[str] = []
    if request.enhance and search:
        enhancement = await get_query_enhancer().enhance(search)
        extra_terms = enhancement.extra_terms()

    response = await asyncio.to_thread(_run_search, filters, extra_terms, user, profile, counted)
    response.enhancement = enhancement
    return response


@router.get("/filters", response_model=FilterOptions)
def filter_options():
    return FilterOptions(
        sources=contract_service.get_all_sources(),
        categories=contract_service.get_all_categories(),
    )


@router.get("/batch", response_model=list[Contract])
def contracts_by_ids(ids: list[str] = Query(default=[])):
    if len(ids) > MAX_BATCH_IDS:
        raise HTTPException(status_code=400, detail=f"At most {MAX_BATCH_IDS} ids per request")
    for contract_id in ids:
        validate_contract_id(contract_id)
    return contract_service.get_contracts_by_ids(ids)


@router.get("/{contract_id}", response_model=ContractDetail)
def contract_detail(contract_id: str, related_limit: int = Query(default=4, ge=0, le=20)):
    validate_contract_id(contract_id)
    row = contract_service.require_contract_row(contract_id)
    contract = contract_service.map_contract_row(row)
    related = []
    if related_limit:
        related = contract_service.get_related_contracts(contract, related_limit, row.get('purchasing_org'))
    return contract_service.build_contract_detail(contract, related)
