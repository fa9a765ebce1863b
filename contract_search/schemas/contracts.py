from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .account import SearchLimitInfo
from .enhance import EnhancedQuery


SortBy = Literal["relevance", "date", "supplier", "title", "end_date"]
SortOrder = Literal["asc", "desc"]


class Contract(BaseModel):
    id: str
    source: str
    contract_id: str
    url: str = ""
    supplier_name: str = "Unknown"
    contract_title: str = "Untitled"
    contract_description: str = ""
    category: str = "Other"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ContractDetail(Contract):
    period: str
    days_until_expiration: Optional[int] = None
    expiring_soon: bool = False
    suggested_categories: list[str] = Field(default_factory=list)
    related: list[Contract] = Field(default_factory=list)


class ContractFilters(BaseModel):
    search: Optional[str] = None
    sources: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    sort_by: SortBy = "relevance"
    sort_order: SortOrder = "desc"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class SearchRequest(ContractFilters):
    enhance: bool = False


class ContractPage(BaseModel):
    contracts: list[Contract]
    total: int
    page: int
    limit: int
    has_more: bool


class SearchResponse(ContractPage):
    saved_ids: list[str] = Field(default_factory=list)
    limit_info: Optional[SearchLimitInfo] = None
    enhancement: Optional[EnhancedQuery] = None


class FilterOptions(BaseModel):
    sources: list[str]
    categories: list[str]


class SavedContractEntry(BaseModel):
    id: str
    saved_at: Optional[datetime] = None
    contract: Optional[Contract] = None
