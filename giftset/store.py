"""
Session state: the product catalog and the gift set proposals.

The store is passed explicitly to whoever needs it. Persistence goes through an
adapter and only happens when `save()` is called.
"""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from typing import Any, Dict, List, Optional

from .costing import compute_breakdown
from .models import Breakdown, GiftSet, ImportResult, Product, ProductPatch, Tier, TierParams
from .normalize import import_csv_bytes
from .report import export_report, tier_label
from .rules import ALL_CATEGORIES, DEFAULT_CATEGORY, DEFAULT_UNIT, NEW_PRODUCT_NAME, NEW_PRODUCT_SKU

logger = logging.getLogger(__name__)

SEED_PRODUCTS = [
    {
        "id": "1",
        "sku": "ZS-CJ-001",
        "name": "青山远黛-禅意茶具",
        "spec": "一壶四杯",
        "unit": "套",
        "platformPrice": 200,
        "channelPrice": 299,
        "retailPrice": 599,
        "image": "https://images.unsplash.com/photo-1576020488411-26298acb51bd?auto=format&fit=crop&q=80&w=400",
        "manufacturer": "景德镇文创",
        "category": "茶具",
    },
]

SORT_DEFAULT = "default"
SORT_PRICE_ASC = "price-asc"
SORT_PRICE_DESC = "price-desc"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class MemoryAdapter:
    """Keeps the last saved snapshot in memory."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.data = data
        self.saves = 0

    def load(self) -> Optional[Dict[str, Any]]:
        return self.data

    def save(self, data: Dict[str, Any]) -> None:
        self.data = data
        self.saves += 1


class JsonFileAdapter:
    def __init__(self, path: str):
        self.path = path

    def load(self) -> Optional[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, data: Dict[str, Any]) -> None:
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)


class CatalogStore:
    def __init__(self, adapter=None):
        self.adapter = adapter if adapter is not None else MemoryAdapter()
        self.products: List[Product] = []
        self.gift_sets: List[GiftSet] = []
        self._last_batch_stamp = 0
        self.load()

    # ---------- persistence ----------

    def load(self) -> None:
        data = self.adapter.load()
        if data is None:
            self.products = [Product.model_validate(p) for p in SEED_PRODUCTS]
            self.gift_sets = []
            return
        self.products = [Product.model_validate(p) for p in data.get("products", [])]
        self.gift_sets = [GiftSet.model_validate(s) for s in data.get("giftSets", [])]
        logger.info("loaded %d product(s), %d gift set(s)", len(self.products), len(self.gift_sets))

    def snapshot(self) -> Dict[str, Any]:
        return {
            "products": [p.model_dump(mode="json", by_alias=True) for p in self.products],
            "giftSets": [s.model_dump(mode="json", by_alias=True) for s in self.gift_sets],
        }

    def save(self) -> None:
        self.adapter.save(self.snapshot())

    def reset(self) -> None:
        self.products = [Product.model_validate(p) for p in SEED_PRODUCTS]
        self.gift_sets = []
        logger.warning("store reset to seed catalog")

    # ---------- catalog ----------

    def get_product(self, product_id: str) -> Optional[Product]:
        for p in self.products:
            if p.id == product_id:
                return p
        return None

    def _require_product(self, product_id: str) -> int:
        for idx, p in enumerate(self.products):
            if p.id == product_id:
                return idx
        raise KeyError(f"Unknown product '{product_id}'")

    def list_products(self, query: str = "", category: str = ALL_CATEGORIES, sort: str = SORT_DEFAULT) -> List[Product]:
        result = [
            p for p in self.products
            if (query in p.name or query in p.sku)
            and (category == ALL_CATEGORIES or p.category == category)
        ]
        if sort == SORT_PRICE_ASC:
            result.sort(key=lambda p: p.channel_price)
        elif sort == SORT_PRICE_DESC:
            result.sort(key=lambda p: p.channel_price, reverse=True)
        elif sort != SORT_DEFAULT:
            raise ValueError(f"Unknown sort '{sort}'")
        return result

    def categories(self) -> List[str]:
        seen = [ALL_CATEGORIES]
        for p in self.products:
            if p.category and p.category not in seen:
                seen.append(p.category)
        return seen

    def add_product(self, patch: Optional[ProductPatch] = None) -> Product:
        fields = {
            "sku": NEW_PRODUCT_SKU,
            "name": NEW_PRODUCT_NAME,
            "unit": DEFAULT_UNIT,
            "category": DEFAULT_CATEGORY,
        }
        if patch is not None:
            fields.update(patch.model_dump(exclude_unset=True, exclude_none=True))
        product = Product(id=_new_id(), **fields)
        self.products.insert(0, product)
        return product

    def update_product(self, product_id: str, patch: ProductPatch) -> Product:
        idx = self._require_product(product_id)
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        updated = self.products[idx].model_copy(update=changes)
        self.products[idx] = updated
        return updated

    def delete_product(self, product_id: str) -> None:
        # Tiers keep the id; it resolves to nothing from now on.
        idx = self._require_product(product_id)
        del self.products[idx]

    def import_csv(self, raw: bytes) -> ImportResult:
        # Ids are "<stamp>-<row>", so every batch needs its own stamp.
        stamp = max(_now_ms(), self._last_batch_stamp + 1)
        result = import_csv_bytes(raw, batch_stamp=stamp)
        self._last_batch_stamp = stamp
        self.products = result.products + self.products
        return result

    # ---------- gift sets ----------

    def get_gift_set(self, set_id: str) -> GiftSet:
        for s in self.gift_sets:
            if s.id == set_id:
                return s
        raise KeyError(f"Unknown gift set '{set_id}'")

    def create_gift_set(self, name: str) -> GiftSet:
        if not name.strip():
            raise ValueError("Gift set name must not be blank")
        gift_set = GiftSet(id=_new_id(), name=name, created_at=_now_ms())
        self.gift_sets.insert(0, gift_set)
        return gift_set

    def delete_gift_set(self, set_id: str) -> None:
        self.get_gift_set(set_id)
        self.gift_sets = [s for s in self.gift_sets if s.id != set_id]

    def get_tier(self, set_id: str, tier_id: str) -> Tier:
        for t in self.get_gift_set(set_id).tiers:
            if t.id == tier_id:
                return t
        raise KeyError(f"Unknown tier '{tier_id}' in gift set '{set_id}'")

    def add_tier(self, set_id: str, params: TierParams) -> Tier:
        gift_set = self.get_gift_set(set_id)
        tier = Tier(id=_new_id(), label=tier_label(params.target_tier_price), **params.model_dump())
        gift_set.tiers.append(tier)
        return tier

    def update_tier(self, set_id: str, tier_id: str, params: TierParams) -> Tier:
        tier = self.get_tier(set_id, tier_id)
        for key, value in params.model_dump().items():
            setattr(tier, key, value)
        tier.label = tier_label(tier.target_tier_price)
        return tier

    def delete_tier(self, set_id: str, tier_id: str) -> None:
        gift_set = self.get_gift_set(set_id)
        self.get_tier(set_id, tier_id)
        gift_set.tiers = [t for t in gift_set.tiers if t.id != tier_id]

    def add_to_tier(self, set_id: str, tier_id: str, product_id: str) -> Tier:
        tier = self.get_tier(set_id, tier_id)
        self._require_product(product_id)
        tier.selected_product_ids.append(product_id)
        return tier

    def remove_from_tier(self, set_id: str, tier_id: str, index: int) -> Tier:
        tier = self.get_tier(set_id, tier_id)
        if not 0 <= index < len(tier.selected_product_ids):
            raise KeyError(f"No selection at position {index} in tier '{tier_id}'")
        del tier.selected_product_ids[index]
        return tier

    # ---------- derived ----------

    def breakdown(self, set_id: str, tier_id: str) -> Breakdown:
        return compute_breakdown(self.get_tier(set_id, tier_id), self.get_product)

    def export(self, set_id: str) -> str:
        return export_report(self.get_gift_set(set_id), self.get_product)
