"""
Tier costing: per-unit selling price, tax, margin and budget deviation.

Nothing here is cached or stored; callers recompute against the live catalog
so deleted or edited products are always reflected.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Tuple

from .models import Breakdown, Product, Tier

ProductResolver = Callable[[str], Optional[Product]]


def resolve_products(product_ids: Sequence[str], resolve_product: ProductResolver) -> Tuple[List[Product], List[str]]:
    """
    Look up ids in order, keeping duplicates.

    Returns (resolved products, ids that no longer exist).
    """
    items: List[Product] = []
    missing: List[str] = []
    for pid in product_ids:
        product = resolve_product(pid)
        if product is None:
            missing.append(pid)
        else:
            items.append(product)
    return items, missing


def breakdown_for_products(tier: Tier, items: Sequence[Product], missing: Sequence[str] = ()) -> Breakdown:
    total_retail = sum(p.retail_price for p in items)
    total_our_cost = sum(p.platform_price for p in items)

    product_discounted_price = total_retail * (tier.discount_rate / 100)
    other_costs = tier.box_cost + tier.labor_cost + tier.logistics_cost

    unit_our_total_cost = total_our_cost + other_costs
    unit_untaxed_price = product_discounted_price + other_costs
    unit_tax = unit_untaxed_price * (tier.tax_rate / 100)
    final_unit_selling_price = unit_untaxed_price + unit_tax
    total_contract_amount = final_unit_selling_price * tier.quantity

    if unit_untaxed_price != 0:
        margin_rate = (unit_untaxed_price - unit_our_total_cost) / unit_untaxed_price * 100
    else:
        margin_rate = 0.0

    # Budget is judged on the discounted product total, not the taxed price.
    return Breakdown(
        item_count=len(items),
        missing_product_ids=list(missing),
        total_retail=total_retail,
        total_our_cost=total_our_cost,
        product_discounted_price=product_discounted_price,
        other_costs=other_costs,
        unit_our_total_cost=unit_our_total_cost,
        unit_untaxed_price=unit_untaxed_price,
        unit_tax=unit_tax,
        final_unit_selling_price=final_unit_selling_price,
        total_contract_amount=total_contract_amount,
        margin_rate=margin_rate,
        is_over_budget=product_discounted_price > tier.target_tier_price,
        budget_deviation=product_discounted_price - tier.target_tier_price,
    )


def compute_breakdown(tier: Tier, resolve_product: ProductResolver) -> Breakdown:
    """Resolve the tier's selection against the catalog and price it."""
    items, missing = resolve_products(tier.selected_product_ids, resolve_product)
    return breakdown_for_products(tier, items, missing)
