from pydantic import BaseModel, Field


class EnhanceRequest(BaseModel):
    query: str = ""


class EnhancedQuery(BaseModel):
    original_query: str
    categories: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    suppliers: list[str] = Field(default_factory=list)

    @classmethod
    def empty(cls, query: str) -> "EnhancedQuery":
        return cls(original_query=query)

    def extra_terms(self) -> list[str]:
        """Keywords and supplier names to OR into a free-text search."""
        return [*self.keywords, *self.suppliers]


class CacheStats(BaseModel):
    total: int
    valid: int
    expired: int
