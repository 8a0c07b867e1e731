from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, Response, UploadFile

from .config import configure_logging, load_settings
from .errors import CsvImportError
from .models import (
    Breakdown,
    GiftSet,
    GiftSetCreate,
    HealthResponse,
    ImportResult,
    Product,
    ProductPatch,
    Tier,
    TierParams,
    TierSelection,
)
from .report import report_filename
from .rules import ALL_CATEGORIES, IMPORT_FAILED
from .store import SORT_DEFAULT, CatalogStore, JsonFileAdapter

logger = logging.getLogger(__name__)

router = APIRouter()


def get_store(request: Request) -> CatalogStore:
    return request.app.state.store


def _not_found(exc: KeyError) -> HTTPException:
    return HTTPException(status_code=404, detail=exc.args[0] if exc.args else "Not found")


@router.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


# ---------- catalog ----------

@router.get("/products", response_model=List[Product])
def list_products(
    q: str = "",
    category: str = ALL_CATEGORIES,
    sort: str = SORT_DEFAULT,
    store: CatalogStore = Depends(get_store),
):
    try:
        return store.list_products(q, category, sort)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.get("/categories", response_model=List[str])
def categories(store: CatalogStore = Depends(get_store)):
    return store.categories()


@router.post("/products", response_model=Product, status_code=201)
def create_product(patch: Optional[ProductPatch] = None, store: CatalogStore = Depends(get_store)):
    product = store.add_product(patch)
    store.save()
    return product


@router.patch("/products/{product_id}", response_model=Product)
def update_product(product_id: str, patch: ProductPatch, store: CatalogStore = Depends(get_store)):
    try:
        product = store.update_product(product_id, patch)
    except KeyError as exc:
        raise _not_found(exc)
    store.save()
    return product


@router.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: str, store: CatalogStore = Depends(get_store)):
    try:
        store.delete_product(product_id)
    except KeyError as exc:
        raise _not_found(exc)
    store.save()


@router.post("/products/import", response_model=ImportResult)
async def import_products(file: UploadFile = File(...), store: CatalogStore = Depends(get_store)):
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=422, detail="Only CSV files are supported")

    raw = await file.read()
    try:
        result = store.import_csv(raw)
    except CsvImportError as exc:
        logger.warning("import of %s failed: %s", file.filename, exc)
        raise HTTPException(status_code=422, detail=IMPORT_FAILED)

    store.save()
    return result


# ---------- gift sets ----------

@router.get("/giftsets", response_model=List[GiftSet])
def list_gift_sets(store: CatalogStore = Depends(get_store)):
    return store.gift_sets


@router.post("/giftsets", response_model=GiftSet, status_code=201)
def create_gift_set(body: GiftSetCreate, store: CatalogStore = Depends(get_store)):
    try:
        gift_set = store.create_gift_set(body.name)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    store.save()
    return gift_set


@router.get("/giftsets/{set_id}", response_model=GiftSet)
def get_gift_set(set_id: str, store: CatalogStore = Depends(get_store)):
    try:
        return store.get_gift_set(set_id)
    except KeyError as exc:
        raise _not_found(exc)


@router.delete("/giftsets/{set_id}", status_code=204)
def delete_gift_set(set_id: str, store: CatalogStore = Depends(get_store)):
    try:
        store.delete_gift_set(set_id)
    except KeyError as exc:
        raise _not_found(exc)
    store.save()


@router.post("/giftsets/{set_id}/tiers", response_model=Tier, status_code=201)
def add_tier(set_id: str, params: TierParams, store: CatalogStore = Depends(get_store)):
    try:
        tier = store.add_tier(set_id, params)
    except KeyError as exc:
        raise _not_found(exc)
    store.save()
    return tier


@router.put("/giftsets/{set_id}/tiers/{tier_id}", response_model=Tier)
def update_tier(set_id: str, tier_id: str, params: TierParams, store: CatalogStore = Depends(get_store)):
    try:
        tier = store.update_tier(set_id, tier_id, params)
    except KeyError as exc:
        raise _not_found(exc)
    store.save()
    return tier


@router.delete("/giftsets/{set_id}/tiers/{tier_id}", status_code=204)
def delete_tier(set_id: str, tier_id: str, store: CatalogStore = Depends(get_store)):
    try:
        store.delete_tier(set_id, tier_id)
    except KeyError as exc:
        raise _not_found(exc)
    store.save()


@router.post("/giftsets/{set_id}/tiers/{tier_id}/products", response_model=Tier)
def add_to_tier(set_id: str, tier_id: str, body: TierSelection, store: CatalogStore = Depends(get_store)):
    try:
        tier = store.add_to_tier(set_id, tier_id, body.product_id)
    except KeyError as exc:
        raise _not_found(exc)
    store.save()
    return tier


@router.delete("/giftsets/{set_id}/tiers/{tier_id}/products/{index}", response_model=Tier)
def remove_from_tier(set_id: str, tier_id: str, index: int, store: CatalogStore = Depends(get_store)):
    try:
        tier = store.remove_from_tier(set_id, tier_id, index)
    except KeyError as exc:
        raise _not_found(exc)
    store.save()
    return tier


@router.get("/giftsets/{set_id}/tiers/{tier_id}/breakdown", response_model=Breakdown)
def tier_breakdown(set_id: str, tier_id: str, store: CatalogStore = Depends(get_store)):
    try:
        return store.breakdown(set_id, tier_id)
    except KeyError as exc:
        raise _not_found(exc)


@router.get("/giftsets/{set_id}/export")
def export_gift_set(set_id: str, store: CatalogStore = Depends(get_store)):
    try:
        gift_set = store.get_gift_set(set_id)
        text = store.export(set_id)
    except KeyError as exc:
        raise _not_found(exc)

    filename = report_filename(gift_set, date.today())
    return Response(
        content=text.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


@router.post("/reset", response_model=HealthResponse)
def reset(store: CatalogStore = Depends(get_store)):
    store.reset()
    store.save()
    return {"ok": True}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = load_settings()
    configure_logging(settings.log_level)
    if app.state.store is None:
        app.state.store = CatalogStore(JsonFileAdapter(settings.store_path))
    yield


def create_app(store: Optional[CatalogStore] = None) -> FastAPI:
    """
    Without a store, the JSON-file store from settings is opened at startup,
    together with logging configuration.
    """
    app = FastAPI(
        title="giftset-pricing",
        description="Gift set catalog import, tier costing and proposal export",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = store
    app.include_router(router)
    return app


app = create_app()
