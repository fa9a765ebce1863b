"""Query enhancement: expands a free-text search into related keywords,
categories and supplier names using a hosted Anthropic model.

Results are cached in memory per normalized query for a fixed TTL. Any
failure (no API key, API error, malformed model output) degrades to an empty
enhancement so search keeps working without it; failures are not cached.
"""
import json
import logging
import re
import time
from typing import Any, Callable, Optional

import anthropic

from ..core.config import Config
from ..schemas.enhance import CacheStats, EnhancedQuery


logger = logging.getLogger(__name__)

AVAILABLE_CATEGORIES = [
    'Technology',
    'Facilities',
    'Corporate Services',
    'Furniture',
    'Healthcare',
    'Transportation',
    'Construction',
    'Food Service',
    'Education',
    'Security',
]

MIN_QUERY_LENGTH = 3
MAX_CACHE_ENTRIES = 1000
MAX_CATEGORIES = 2
MAX_KEYWORDS = 8
MAX_SUPPLIERS = 3

PROMPT_TEMPLATE = """You are a search query analyzer for a government contract database.

User is searching for: {query}

Available contract categories: {categories}

Task: Analyze this search query and expand it to help find relevant contracts.

Return a JSON object with:
1. "categories": Array of ONLY the most specific, directly relevant categories from the available list (0-1 max, prefer empty array unless extremely confident)
2. "keywords": Array of 4-8 highly specific synonym/related search terms (lowercase, exact products/services, NOT generic terms)
3. "suppliers": Array of 0-3 major supplier names that specifically offer this product/service (optional)

Rules:
- Categories must be HIGHLY specific - only include if the search term clearly falls into that category
- DO NOT include generic categories unless the search term is generic
- Keywords should be specific synonyms, NOT broader categories (e.g., "laptops" -> "notebooks", "portable computers" NOT "technology" or "IT equipment")
- Suppliers must be well-known providers of the EXACT product/service searched
- Be conservative - better to return fewer, more relevant results
- Output ONLY valid JSON, no explanation

Example for "laptops":
{{
  "categories": ["Technology"],
  "keywords": ["notebooks", "portable computers", "mobile computers", "laptop computers"],
  "suppliers": ["Dell", "Lenovo", "HP"]
}}

Example for "cybersecurity":
{{
  "categories": ["Technology", "Security"],
  "keywords": ["cyber defense", "network security", "information security", "threat protection"],
  "suppliers": ["Palo Alto Networks", "Cisco"]
}}"""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def normalize_query(query: str) -> str:
    return query.lower().strip()


def build_prompt(query: str) -> str:
    return PROMPT_TEMPLATE.format(query=json.dumps(query), categories=', '.join(AVAILABLE_CATEGORIES))


def _string_list(value: Any, limit: int) -> list[str]:
    if not isinstance(value, list):
        return []
    seen: list[str] = []
    for item in value:
        if isinstance(item, str) and item.strip() and item.strip() not in seen:
            seen.append(item.strip())
    return seen[:limit]


def parse_enhancement(query: str, text: str) -> EnhancedQuery:
    """Validate the model's JSON reply. Raises ValueError when it is not a JSON object."""
    parsed = json.loads(_CODE_FENCE.sub('', text.strip()))
    if not isinstance(parsed, dict):
        raise ValueError("Enhancement response is not a JSON object")

    allowed = {c.lower(): c for c in AVAILABLE_CATEGORIES}
    categories = [allowed[c.lower()] for c in _string_list(parsed.get('categories'), len(allowed)) if c.lower() in allowed]
    raw_keywords = parsed.get('keywords')
    if isinstance(raw_keywords, list):
        raw_keywords = [k.lower() for k in raw_keywords if isinstance(k, str)]
    keywords = _string_list(raw_keywords, MAX_KEYWORDS)

    return EnhancedQuery(
        original_query=query,
        categories=list(dict.fromkeys(categories))[:MAX_CATEGORIES],
        keywords=keywords,
        suppliers=_string_list(parsed.get('suppliers'), MAX_SUPPLIERS),
    )


class QueryEnhancer:
    """Cached wrapper around the Anthropic messages API for search expansion."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = MAX_CACHE_ENTRIES,
    ):
        self.api_key = api_key if api_key is not None else Config.ANTHROPIC_API_KEY
        self.model = model or Config.ANTHROPIC_MODEL
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else Config.QUERY_CACHE_TTL_SECONDS
        self.max_entries = max_entries
        self._clock = clock
        self._client = client
        self._cache: dict[str, tuple[EnhancedQuery, float]] = {}

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self.api_key,
                timeout=Config.ANTHROPIC_TIMEOUT_SECONDS,
            )
        return self._client

    def _is_fresh(self, stored_at: float, now: float) -> bool:
        return now - stored_at < self.ttl_seconds

    def _remember(self, key: str, result: EnhancedQuery) -> None:
        now = self._clock()
        self._cache[key] = (result, now)
        if len(self._cache) > self.max_entries:
            expired = [k for k, (_, stored_at) in self._cache.items() if not self._is_fresh(stored_at, now)]
            for k in expired:
                del self._cache[k]

    async def _ask_model(self, query: str) -> str:
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=300,
            temperature=0.3,
            messages=[{'role': 'user', 'content': build_prompt(query)}],
        )
        for block in message.content:
            if getattr(block, 'type', None) == 'text':
                return block.text
        return ''

    async def enhance(self, query: str) -> EnhancedQuery:
        query = query or ''
        key = normalize_query(query)

        cached = self._cache.get(key)
        if cached and self._is_fresh(cached[1], self._clock()):
            logger.debug(f"Query enhancement cache hit for: {query!r}")
            return cached[0]

        if len(key) < MIN_QUERY_LENGTH:
            return EnhancedQuery.empty(query)

        if not self.api_key:
            return EnhancedQuery.empty(query)

        try:
            text = await self._ask_model(query)
            result = parse_enhancement(query, text)
        except anthropic.APIError as e:
            logger.error(f"Query enhancement API error for {query!r}: {e}")
            return EnhancedQuery.empty(query)
        except ValueError as e:
            logger.error(f"Query enhancement returned invalid JSON for {query!r}: {e}")
            return EnhancedQuery.empty(query)

        self._remember(key, result)
        logger.info(f"Enhanced query {query!r}: {result.model_dump()}")
        return result

    def clear(self) -> None:
        self._cache.clear()
        logger.info("Query enhancement cache cleared")

    def stats(self) -> CacheStats:
        now = self._clock()
        valid = sum(1 for _, stored_at in self._cache.values() if self._is_fresh(stored_at, now))
        return CacheStats(total=len(self._cache), valid=valid, expired=len(self._cache) - valid)


_enhancer: Optional[QueryEnhancer] = None


def get_query_enhancer() -> QueryEnhancer:
    global _enhancer
    if _enhancer is None:
        _enhancer = QueryEnhancer()
    return _enhancer
