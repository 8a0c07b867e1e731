"""
Gift set -> CSV report.

Layout: one row per selected product; only the first row of a tier carries the
tier columns (budget, discount, quantity, totals), later rows leave them blank.
Operators read the sheet grouped that way, so the repeated-blank layout stays.
"""

from __future__ import annotations

import csv
import io
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import List

from .costing import ProductResolver, breakdown_for_products, resolve_products
from .models import GiftSet, Tier
from .rules import BOM, EMPTY_TIER_NAME, EXPORT_FILENAME, EXPORT_HEADER, PLACEHOLDER, TIER_LABEL

_CENTS = Decimal("0.01")


def money(value: float) -> str:
    """Two decimals, ties away from zero (same digits a spreadsheet user expects)."""
    return str(Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP))


def plain(value: float) -> str:
    """Render a stored number without a spurious trailing .0."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def tier_label(target_tier_price: float) -> str:
    return TIER_LABEL.format(price=plain(target_tier_price))


def _tier_rows(set_name: str, tier: Tier, resolve_product: ProductResolver) -> List[List[str]]:
    items, missing = resolve_products(tier.selected_product_ids, resolve_product)
    b = breakdown_for_products(tier, items, missing)
    rate = tier.discount_rate / 100

    head = [set_name, plain(tier.target_tier_price), f"{plain(tier.discount_rate)}%", str(tier.quantity)]
    totals = [money(b.other_costs), money(b.unit_tax), money(b.final_unit_selling_price), money(b.total_contract_amount)]
    blank = [""] * len(head)

    if not items:
        product_cols = [EMPTY_TIER_NAME, PLACEHOLDER, PLACEHOLDER, PLACEHOLDER, "0", money(0), "0", PLACEHOLDER]
        return [head + product_cols + totals]

    rows = []
    for idx, p in enumerate(items):
        product_cols = [
            p.name,
            p.sku,
            p.spec,
            p.unit,
            plain(p.retail_price),
            money(p.retail_price * rate),
            plain(p.platform_price),
            p.image,
        ]
        if idx == 0:
            rows.append(head + product_cols + totals)
        else:
            rows.append(blank + product_cols + [""] * len(totals))
    return rows


def export_report(gift_set: GiftSet, resolve_product: ProductResolver) -> str:
    """BOM-prefixed CSV text for the whole gift set."""
    outp = io.StringIO(newline="")
    writer = csv.writer(outp, delimiter=",", lineterminator="\n")

    writer.writerow(EXPORT_HEADER)
    for tier in gift_set.tiers:
        writer.writerows(_tier_rows(gift_set.name, tier, resolve_product))

    return BOM + outp.getvalue()


def report_filename(gift_set: GiftSet, day: date) -> str:
    return EXPORT_FILENAME.format(name=gift_set.name, day=day.isoformat())
