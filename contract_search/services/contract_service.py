import json
import logging
import re
from datetime import date
from typing import Any, Iterable, Optional

from fastapi import HTTPException

from ..schemas.contracts import Contract, ContractDetail, ContractFilters, ContractPage
from .category_extractor import get_contract_categories
from .contract_utils import (
    days_until_expiration,
    extract_base_categories,
    format_date_range,
    is_expiring_soon,
    split_categories,
)
from .supabase_service import get_client


logger = logging.getLogger(__name__)

TABLE = 'contracts'
TEXT_COLUMNS = ('contract_title', 'vendor_name', 'description')
SORT_COLUMNS = {
    'date': 'created_at',
    'supplier': 'vendor_name',
    'title': 'contract_title',
    'end_date': 'contract_end_date',
}
# Store value -> display name; anything unknown is shown as "Other"
STORE_TO_DISPLAY_SOURCE = {
    'OMNIA': 'OMNIA Partners',
    'E&I': 'E&I',
    'Sourcewell': 'Sourcewell',
}
DISPLAY_TO_STORE_SOURCE = {display: store for store, display in STORE_TO_DISPLAY_SOURCE.items()}

_OR_SYNTAX_CHARS = re.compile(r'[,()]')


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning(f"Unparseable contract date: {value!r}")
        return None


def display_source(purchasing_org: Optional[str]) -> str:
    return STORE_TO_DISPLAY_SOURCE.get(purchasing_org or '', 'Other')


def store_source(source: str) -> str:
    return DISPLAY_TO_STORE_SOURCE.get(source, source)


def map_contract_row(row: dict[str, Any]) -> Contract:
    items = row.get('items') or []
    category = 'Other'
    if isinstance(items, list) and items and isinstance(items[0], dict):
        category = items[0].get('category') or 'Other'

    document_urls = row.get('document_urls') or []

    return Contract(
        id=str(row['id']),
        source=display_source(row.get('purchasing_org')),
        contract_id=str(row.get('contract_number') or row['id']),
        url=str(document_urls[0]) if document_urls else '',
        supplier_name=row.get('vendor_name') or 'Unknown',
        contract_title=row.get('contract_title') or 'Untitled',
        contract_description=row.get('description') or '',
        category=category,
        start_date=_parse_date(row.get('contract_start_date')),
        end_date=_parse_date(row.get('contract_end_date')),
        created_at=row.get('created_at'),
        updated_at=row.get('updated_at'),
    )


def sanitize_term(term: str) -> str:
    """Strip characters that would split or nest a PostgREST or=() expression."""
    return ' '.join(_OR_SYNTAX_CHARS.sub(' ', term).split())


def build_text_clause(search: Optional[str], extra_terms: Iterable[str] = ()) -> Optional[str]:
    terms: list[str] = []
    for term in [search or '', *extra_terms]:
        cleaned = sanitize_term(term)
        if cleaned and cleaned.lower() not in (t.lower() for t in terms):
            terms.append(cleaned)
    if not terms:
        return None
    return ','.join(f"{column}.ilike.%{term}%" for term in terms for column in TEXT_COLUMNS)


def _category_value(category: str) -> str:
    value = json.dumps([{'category': category}], separators=(',', ':'))
    if not _OR_SYNTAX_CHARS.search(category):
        return value
    # Reserved characters inside an or=() operand need a double-quoted, backslash-escaped value
    escaped = value.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


def build_category_clause(categories: list[str]) -> str:
    return ','.join(f"items.cs.{_category_value(category)}" for category in categories)


def expand_categories(categories: list[str], labels: Iterable[str]) -> list[str]:
    """Add every stored label that lists one of the chosen categories.

    Filter options split "Corporate Services, Facilities" into base categories,
    so picking "Facilities" has to match that combined label as well.
    """
    chosen = set(categories)
    combined = [label for label in labels if label not in chosen and chosen & set(split_categories(label))]
    return list(dict.fromkeys([*categories, *combined]))


def apply_filters(query, filters: ContractFilters, extra_terms: Iterable[str] = ()):
    text_clause = build_text_clause(filters.search, extra_terms)
    if text_clause:
        query = query.or_(text_clause)

    if filters.sources:
        query = query.in_('purchasing_org', [store_source(s) for s in filters.sources])

    if len(filters.categories) == 1:
        query = query.contains('items', [{'category': filters.categories[0]}])
    elif filters.categories:
        query = query.or_(build_category_clause(filters.categories))

    if filters.date_start:
        query = query.gte('contract_start_date', filters.date_start.isoformat())
    if filters.date_end:
        query = query.lte('contract_end_date', filters.date_end.isoformat())

    sort_column = SORT_COLUMNS.get(filters.sort_by)
    if sort_column:
        query = query.order(sort_column, desc=filters.sort_order == 'desc')
    else:
        # Relevance has no ranking of its own; newest first
        query = query.order('created_at', desc=True)

    offset = (filters.page - 1) * filters.limit
    return query.range(offset, offset + filters.limit - 1)


def get_contracts(filters: ContractFilters, extra_terms: Iterable[str] = ()) -> ContractPage:
    if filters.categories:
        categories = expand_categories(filters.categories, _category_labels())
        filters = filters.model_copy(update={'categories': categories})

    try:
        query = get_client().table(TABLE).select('*', count='exact')
        result = apply_filters(query, filters, extra_terms).execute()
    except Exception as e:
        logger.error(f"Failed to search contracts: {e}")
        raise HTTPException(status_code=502, detail="Failed to search contracts")

    contracts = [map_contract_row(row) for row in result.data or []]
    total = result.count or 0
    return ContractPage(
        contracts=contracts,
        total=total,
        page=filters.page,
        limit=filters.limit,
        has_more=total > filters.page * filters.limit,
    )


def get_contract_row(contract_id: str) -> Optional[dict[str, Any]]:
    try:
        result = get_client().table(TABLE).select('*').eq('id', contract_id).limit(1).execute()
    except Exception as e:
        logger.error(f"Failed to fetch contract {contract_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch contract")
    return result.data[0] if result.data else None


def require_contract_row(contract_id: str) -> dict[str, Any]:
    row = get_contract_row(contract_id)
    if not row:
        raise HTTPException(status_code=404, detail=f"Contract not found: {contract_id}")
    return row


def get_contract_by_id(contract_id: str) -> Contract:
    return map_contract_row(require_contract_row(contract_id))


def get_contracts_by_ids(contract_ids: list[str]) -> list[Contract]:
    if not contract_ids:
        return []
    try:
        result = get_client().table(TABLE).select('*').in_('id', contract_ids).execute()
    except Exception as e:
        logger.error(f"Failed to fetch contracts by ids: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch contracts")
    return [map_contract_row(row) for row in result.data or []]


def get_all_sources() -> list[str]:
    try:
        result = get_client().table(TABLE).select('purchasing_org').not_.is_('purchasing_org', 'null').execute()
    except Exception as e:
        logger.error(f"Failed to fetch sources: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch sources")
    return sorted({display_source(row.get('purchasing_org')) for row in result.data or []})


def _category_labels() -> list[str]:
    """Distinct category labels as stored on contract items."""
    try:
        result = get_client().table(TABLE).select('items').not_.is_('items', 'null').execute()
    except Exception as e:
        logger.error(f"Failed to fetch categories: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch categories")

    labels: list[str] = []
    for row in result.data or []:
        items = row.get('items')
        if not isinstance(items, list):
            continue
        labels.extend(str(item['category']) for item in items if isinstance(item, dict) and item.get('category'))
    return list(dict.fromkeys(labels))


def get_all_categories() -> list[str]:
    # Labels like "Corporate Services, Facilities" list several base categories
    return extract_base_categories(_category_labels())


def get_related_contracts(contract: Contract, limit: int = 4,
                          purchasing_org: Optional[str] = None) -> list[Contract]:
    """Same supplier first, then same source organization, then anything else.

    purchasing_org is the stored source value; pass it when the display source
    is "Other", which maps back to no stored value.
    """
    client = get_client()
    source = purchasing_org or store_source(contract.source)

    def _base():
        return client.table(TABLE).select('*').neq('id', contract.id).limit(limit)

    try:
        same_supplier = _base().eq('vendor_name', contract.supplier_name).execute().data or []
        if len(same_supplier) >= limit:
            return [map_contract_row(row) for row in same_supplier]

        same_source = _base().eq('purchasing_org', source).execute().data or []
        if same_source:
            return [map_contract_row(row) for row in same_source[:limit]]

        anything = _base().execute().data or []
        return [map_contract_row(row) for row in anything[:limit]]
    except Exception as e:
        logger.error(f"Failed to fetch related contracts for {contract.id}: {e}")
        return []


def build_contract_detail(contract: Contract, related: Optional[list[Contract]] = None) -> ContractDetail:
    return ContractDetail(
        **contract.model_dump(),
        period=format_date_range(contract.start_date, contract.end_date),
        days_until_expiration=days_until_expiration(contract.end_date),
        expiring_soon=is_expiring_soon(contract.end_date),
        suggested_categories=get_contract_categories(contract.contract_title, contract.contract_description),
        related=related or [],
    )
