from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # JSON keys stay camelCase (platformPrice, selectedProductIds, ...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Product(CamelModel):
    id: str
    sku: str = ""
    name: str = ""
    spec: str = ""
    unit: str = ""
    platform_price: float = Field(default=0.0, ge=0)
    channel_price: float = Field(default=0.0, ge=0)
    retail_price: float = Field(default=0.0, ge=0)
    image: str = ""
    manufacturer: str = ""
    category: str = ""


class ProductPatch(CamelModel):
    """Editable product fields; anything left unset is untouched."""

    sku: Optional[str] = None
    name: Optional[str] = None
    spec: Optional[str] = None
    unit: Optional[str] = None
    platform_price: Optional[float] = Field(default=None, ge=0)
    channel_price: Optional[float] = Field(default=None, ge=0)
    retail_price: Optional[float] = Field(default=None, ge=0)
    image: Optional[str] = None
    manufacturer: Optional[str] = None
    category: Optional[str] = None


class TierParams(CamelModel):
    target_tier_price: float = Field(default=500, ge=0)
    discount_rate: float = Field(default=80, ge=0)
    quantity: int = Field(default=100, gt=0)
    box_cost: float = Field(default=25, ge=0)
    labor_cost: float = Field(default=5, ge=0)
    logistics_cost: float = Field(default=15, ge=0)
    tax_rate: float = Field(default=6, ge=0)


class Tier(TierParams):
    id: str
    label: str = ""
    selected_product_ids: List[str] = Field(default_factory=list)


class GiftSet(CamelModel):
    id: str
    name: str
    created_at: int
    tiers: List[Tier] = Field(default_factory=list)


class GiftSetCreate(CamelModel):
    name: str


class TierSelection(CamelModel):
    product_id: str


class Breakdown(CamelModel):
    item_count: int
    missing_product_ids: List[str] = Field(default_factory=list)
    total_retail: float
    total_our_cost: float
    product_discounted_price: float
    other_costs: float
    unit_our_total_cost: float
    unit_untaxed_price: float
    unit_tax: float
    final_unit_selling_price: float
    total_contract_amount: float
    margin_rate: float
    is_over_budget: bool
    budget_deviation: float


class ReportItem(BaseModel):
    row: Optional[int] = None
    column: Optional[str] = None
    issue: str
    value: Optional[str] = None
    action: str


class EncodingReport(BaseModel):
    detected: Optional[str] = None
    decode_used: str
    decode_fallback: bool = False


class ImportReport(BaseModel):
    rows: int
    encoding: EncodingReport
    mapping: Dict[str, int] = Field(default_factory=dict)
    warnings: List[ReportItem] = Field(default_factory=list)


class ImportResult(BaseModel):
    products: List[Product]
    report: ImportReport


class HealthResponse(BaseModel):
    ok: bool = True
