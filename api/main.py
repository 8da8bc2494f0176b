# Product Data Explorer API
# Purpose: REST API over the collected book catalogue
# Layers: Endpoints delegate data access to api/repository.py
# Docs: interactive Swagger UI at /docs

from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

import dataclasses
import logging
import time
import uuid

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict, Field
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scraper.books_scraper import run_collection

from .database import get_db, init_db
from .repository import SQLProductRepository
from .settings import settings
from .security import (
    REFRESH,
    authenticate_admin,
    decode_token,
    issue_token_pair,
    require_admin,
)

# --------------------------- OpenAPI metadata --------------------------- #
TAGS_METADATA = [
    {"name": "health", "description": "Service health and dataset availability."},
    {"name": "products", "description": "Browse, search and retrieve products."},
    {"name": "navigation", "description": "Top-level navigation headings."},
    {"name": "categories", "description": "Product categories."},
    {"name": "stats", "description": "Catalogue insights and per-category statistics."},
    {"name": "auth", "description": "JWT authentication endpoints."},
    {"name": "admin", "description": "Protected administrative operations."},
]


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Product Data Explorer API",
    version="1.0.0",
    description="API for exploring book listings collected from the World of Books storefront",
    openapi_tags=TAGS_METADATA,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count", "X-Request-ID"],
)

# ----------------------- Structured request logging --------------------- #
logger = logging.getLogger("explorer")
logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


@app.middleware("http")
async def log_requests(request, call_next):
    """Lightweight structured log per request + X-Request-ID and security headers."""
    rid = uuid.uuid4().hex[:8]
    start = time.perf_counter()
    response = await call_next(request)
    dur_ms = (time.perf_counter() - start) * 1000.0
    logger.info(
        "rid=%s method=%s path=%s status=%s duration_ms=%.2f",
        rid, request.method, request.url.path, response.status_code, dur_ms,
    )
    response.headers["X-Request-ID"] = rid
    for key, value in SECURITY_HEADERS.items():
        response.headers.setdefault(key, value)
    return response

# ---------------------- Prometheus metrics endpoint --------------------- #
# Exposes /metrics (not in OpenAPI schema)
Instrumentator().instrument(app).expose(app, include_in_schema=False, endpoint="/metrics")

# --------------------------- OpenAPI schemas ---------------------------- #
class CategoryRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    title: str
    slug: str

class ProductSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    source_id: str
    title: str
    author: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    image_url: Optional[str] = None
    source_url: Optional[str] = None
    in_stock: bool = True
    category: Optional[CategoryRef] = None
    last_scraped_at: Optional[datetime] = None

class ProductDetailOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    description: Optional[str] = None
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    publication_date: Optional[date] = None
    page_count: Optional[int] = None
    genres: List[str] = []
    specs: Dict[str, Any] = {}
    ratings_avg: Optional[float] = None
    reviews_count: int = 0

class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    author: Optional[str] = None
    rating: Optional[int] = None
    text: Optional[str] = None
    review_date: Optional[date] = None
    helpful_count: int = 0

class ProductOut(ProductSummary):
    detail: Optional[ProductDetailOut] = None
    reviews: List[ReviewOut] = []

class ProductPage(BaseModel):
    items: List[ProductSummary]
    total: int
    limit: int
    offset: int

class ProductDetailIn(BaseModel):
    description: Optional[str] = None
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    publication_date: Optional[date] = None
    page_count: Optional[int] = Field(None, ge=0)
    genres: List[str] = []
    specs: Dict[str, Any] = {}

class ProductCreate(BaseModel):
    source_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    author: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    currency: str = "USD"
    image_url: Optional[str] = None
    source_url: Optional[str] = None
    in_stock: bool = True
    category_id: Optional[int] = None
    detail: Optional[ProductDetailIn] = None
    model_config = ConfigDict(json_schema_extra={
        "example": {"source_id": "abc-123", "title": "Dune", "author": "Frank Herbert", "price": 4.99}
    })

class ReviewCreate(BaseModel):
    author: Optional[str] = None
    rating: int = Field(ge=1, le=5)
    text: Optional[str] = None
    review_date: Optional[date] = None
    helpful_count: int = Field(0, ge=0)

class NavigationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    title: str
    slug: str
    source_url: Optional[str] = None
    last_scraped_at: Optional[datetime] = None
    categories: List[CategoryRef] = []

class NavigationUpdate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    source_url: Optional[str] = None

class CategoryOut(BaseModel):
    id: int
    navigation_id: Optional[int] = None
    title: str
    slug: str
    source_url: Optional[str] = None
    last_scraped_at: Optional[datetime] = None
    product_count: int = 0

class CategoryUpdate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    source_url: Optional[str] = None
    navigation_id: Optional[int] = None

class HealthResponse(BaseModel):
    status: Literal["ok"]
    database: str
    products: int = Field(..., ge=0)
    last_scraped_at: Optional[str] = None

class StatsOverviewResponse(BaseModel):
    total_products: int
    total_categories: int
    total_navigations: int
    total_reviews: int
    products_with_images: int
    products_with_details: int
    products_with_isbn: int
    products_with_publisher: int
    image_coverage_pct: float
    detail_coverage_pct: float
    avg_price: float
    min_price: float
    max_price: float

class CategoryStats(BaseModel):
    category: str
    count: int
    min_price: float
    max_price: float
    avg_price: float

class AuthorCount(BaseModel):
    author: str
    count: int

# --- Auth models ---
class LoginRequest(BaseModel):
    username: str = Field(description="Admin username")
    password: str = Field(description="Admin password (plain)")
    model_config = ConfigDict(json_schema_extra={
        "example": {"username": "admin", "password": "admin123"}
    })

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: Literal["bearer"] = "bearer"

class RefreshRequest(BaseModel):
    refresh_token: str

class ScrapeTrigger(BaseModel):
    mode: Literal["queries", "collections"] = "queries"
    target: Optional[int] = Field(None, ge=1, le=10_000)

# ------------------------------ DI / repo ------------------------------- #
def get_repo(db: Session = Depends(get_db)) -> SQLProductRepository:
    """Dependency provider for the repository."""
    return SQLProductRepository(db)

def _category_out(category, count: int) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        navigation_id=category.navigation_id,
        title=category.title,
        slug=category.slug,
        source_url=category.source_url,
        last_scraped_at=category.last_scraped_at,
        product_count=count,
    )

def _changes(body: BaseModel) -> dict:
    # navigation_id may be cleared explicitly; other fields ignore nulls
    changes = {
        k: v for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k == "navigation_id"
    }
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")
    return changes

def _save_or_conflict(repo: SQLProductRepository, obj, changes: dict):
    try:
        return repo.update(obj, changes)
    except IntegrityError as exc:
        repo.db.rollback()
        raise HTTPException(status_code=409, detail="Slug already in use") from exc

# -------------------------------- Routes -------------------------------- #
@app.get(
    "/api/v1/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health probe",
    response_model_exclude_none=True,
)
def health(repo: SQLProductRepository = Depends(get_repo)):
    """Basic readiness + dataset visibility."""
    return repo.health()

@app.get(
    "/api/v1/products",
    response_model=ProductPage,
    tags=["products"],
    summary="List products (paginated, filterable)",
)
def list_products(
    limit: int = Query(20, ge=1, le=100, description="Max number of items to return."),
    offset: int = Query(0, ge=0, description="Number of items to skip."),
    category: Optional[str] = Query(None, description="Category slug.", examples=["fantasy"]),
    navigation: Optional[str] = Query(None, description="Navigation slug.", examples=["fiction"]),
    search: Optional[str] = Query(None, description="Case-insensitive substring on title/author."),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    in_stock: Optional[bool] = Query(None),
    sort: Literal["newest", "price_asc", "price_desc", "title"] = Query("newest"),
    repo: SQLProductRepository = Depends(get_repo),
):
    """Newest first by default."""
    rows, total = repo.list_products(
        limit=limit, offset=offset, sort=sort,
        category=category, navigation=navigation, search=search,
        min_price=min_price, max_price=max_price, in_stock=in_stock,
    )
    return ProductPage(
        items=[ProductSummary.model_validate(p) for p in rows], total=total, limit=limit, offset=offset
    )

@app.get(
    "/api/v1/products/source/{source_id}",
    response_model=ProductOut,
    tags=["products"],
    summary="Get a product by its storefront id",
    responses={404: {"description": "Product not found"}},
)
def get_product_by_source(source_id: str, repo: SQLProductRepository = Depends(get_repo)):
    product = repo.get_by_source_id(source_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductOut.model_validate(repo.get_product(product.id))

@app.get(
    "/api/v1/products/{product_id}",
    response_model=ProductOut,
    tags=["products"],
    summary="Get a single product with detail and reviews",
    responses={404: {"description": "Product not found"}},
)
def get_product(product_id: int, repo: SQLProductRepository = Depends(get_repo)):
    product = repo.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductOut.model_validate(product)

@app.post("/api/v1/products", response_model=ProductOut, status_code=201, tags=["admin"])
def create_product(
    body: ProductCreate,
    repo: SQLProductRepository = Depends(get_repo),
    admin: str = Depends(require_admin),
):
    """Insert a product manually (source_id must be unique)."""
    if repo.source_id_exists(body.source_id):
        raise HTTPException(status_code=409, detail="Product with this source_id already exists")
    if body.category_id is not None and repo.get_category(body.category_id) is None:
        raise HTTPException(status_code=404, detail="Category not found")
    data = body.model_dump(exclude={"detail"})
    detail = body.detail.model_dump() if body.detail else None
    product = repo.create_product(data, detail)
    logger.info("product created id=%s by=%s", product.id, admin)
    return ProductOut.model_validate(repo.get_product(product.id))

@app.post(
    "/api/v1/products/{product_id}/reviews",
    response_model=ReviewOut,
    status_code=201,
    tags=["admin"],
)
def add_review(
    product_id: int,
    body: ReviewCreate,
    repo: SQLProductRepository = Depends(get_repo),
    admin: str = Depends(require_admin),
):
    product = repo.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return ReviewOut.model_validate(repo.add_review(product, body.model_dump()))

# ------------------------- Navigation / categories ----------------------- #
@app.get("/api/v1/navigation", response_model=List[NavigationOut], tags=["navigation"])
def list_navigation(repo: SQLProductRepository = Depends(get_repo)):
    return [NavigationOut.model_validate(n) for n in repo.list_navigation()]

@app.get(
    "/api/v1/navigation/{navigation_id}",
    response_model=NavigationOut,
    tags=["navigation"],
    responses={404: {"description": "Navigation not found"}},
)
def get_navigation(navigation_id: int, repo: SQLProductRepository = Depends(get_repo)):
    navigation = repo.get_navigation(navigation_id)
    if not navigation:
        raise HTTPException(status_code=404, detail="Navigation not found")
    return NavigationOut.model_validate(navigation)

@app.patch("/api/v1/navigation/{navigation_id}", response_model=NavigationOut, tags=["admin"])
def update_navigation(
    navigation_id: int,
    body: NavigationUpdate,
    repo: SQLProductRepository = Depends(get_repo),
    admin: str = Depends(require_admin),
):
    navigation = repo.get_navigation(navigation_id)
    if not navigation:
        raise HTTPException(status_code=404, detail="Navigation not found")
    return NavigationOut.model_validate(_save_or_conflict(repo, navigation, _changes(body)))

@app.delete("/api/v1/navigation/{navigation_id}", status_code=204, tags=["admin"])
def delete_navigation(
    navigation_id: int,
    repo: SQLProductRepository = Depends(get_repo),
    admin: str = Depends(require_admin),
):
    navigation = repo.get_navigation(navigation_id)
    if not navigation:
        raise HTTPException(status_code=404, detail="Navigation not found")
    repo.delete_navigation(navigation)

@app.get("/api/v1/categories", response_model=List[CategoryOut], tags=["categories"])
def list_categories(
    navigation: Optional[str] = Query(None, description="Only categories under this navigation slug."),
    repo: SQLProductRepository = Depends(get_repo),
):
    """Categories sorted by title, with product counts."""
    return [_category_out(c, n) for c, n in repo.list_categories(navigation=navigation)]

@app.get(
    "/api/v1/categories/{category_id}",
    response_model=CategoryOut,
    tags=["categories"],
    responses={404: {"description": "Category not found"}},
)
def get_category(category_id: int, repo: SQLProductRepository = Depends(get_repo)):
    found = repo.get_category(category_id)
    if not found:
        raise HTTPException(status_code=404, detail="Category not found")
    return _category_out(*found)

@app.patch("/api/v1/categories/{category_id}", response_model=CategoryOut, tags=["admin"])
def update_category(
    category_id: int,
    body: CategoryUpdate,
    repo: SQLProductRepository = Depends(get_repo),
    admin: str = Depends(require_admin),
):
    found = repo.get_category(category_id)
    if not found:
        raise HTTPException(status_code=404, detail="Category not found")
    changes = _changes(body)
    if "navigation_id" in changes and changes["navigation_id"] is not None:
        if repo.get_navigation(changes["navigation_id"]) is None:
            raise HTTPException(status_code=404, detail="Navigation not found")
    category, count = found
    return _category_out(_save_or_conflict(repo, category, changes), count)

@app.delete("/api/v1/categories/{category_id}", status_code=204, tags=["admin"])
def delete_category(
    category_id: int,
    repo: SQLProductRepository = Depends(get_repo),
    admin: str = Depends(require_admin),
):
    found = repo.get_category(category_id)
    if not found:
        raise HTTPException(status_code=404, detail="Category not found")
    repo.delete_category(found[0])

# --------------------------------- Stats -------------------------------- #
@app.get("/api/v1/stats/overview", response_model=StatsOverviewResponse, tags=["stats"], summary="Global stats")
def stats_overview(repo: SQLProductRepository = Depends(get_repo)):
    """Totals, coverage and price range."""
    return repo.stats_overview()

@app.get("/api/v1/stats/categories", response_model=List[CategoryStats], tags=["stats"])
def stats_categories(repo: SQLProductRepository = Depends(get_repo)):
    """Per-category count + price stats."""
    return repo.stats_by_category()

@app.get("/api/v1/stats/authors", response_model=List[AuthorCount], tags=["stats"])
def stats_authors(
    limit: int = Query(10, ge=1, le=100),
    repo: SQLProductRepository = Depends(get_repo),
):
    return repo.top_authors(limit=limit)

# ------------------------------ AUTH ------------------------------ #
@app.post("/api/v1/auth/login", response_model=TokenResponse, tags=["auth"])
def login(body: LoginRequest):
    """Access + refresh tokens for the configured admin."""
    if not authenticate_admin(body.username, body.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return TokenResponse(**issue_token_pair(body.username))

@app.post("/api/v1/auth/refresh", response_model=TokenResponse, tags=["auth"])
def refresh(body: RefreshRequest):
    """Trade a refresh token for a fresh pair."""
    claims = decode_token(body.refresh_token, REFRESH)
    if claims.get("sub") != settings.ADMIN_USERNAME:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return TokenResponse(**issue_token_pair(claims["sub"]))

# --------------------------- ADMIN (protected) --------------------------- #
@app.post("/api/v1/scraping/trigger", status_code=202, tags=["admin"])
def trigger_scraping(
    background: BackgroundTasks,
    body: Optional[ScrapeTrigger] = None,
    admin: str = Depends(require_admin),
):
    """Queue a collection run after the response is sent."""
    body = body or ScrapeTrigger()
    cfg = dataclasses.replace(settings, TARGET_BOOK_COUNT=body.target) if body.target else settings
    background.add_task(run_collection, body.mode, cfg)
    logger.info("collection queued mode=%s target=%s by=%s", body.mode, cfg.TARGET_BOOK_COUNT, admin)
    return {"status": "queued", "mode": body.mode, "target": cfg.TARGET_BOOK_COUNT, "by": admin}

# ------------------------------- Root redirect -------------------------- #
@app.get("/", include_in_schema=False)
def root():
    """Redirect to Swagger UI."""
    return RedirectResponse(url="/docs")
