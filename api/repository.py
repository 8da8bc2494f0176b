# Repository: SQL-backed data-access layer for the product catalogue
# Responsibilities: browse/search queries, catalogue edits and stats/insights

from typing import List, Optional, Tuple

import pandas as pd
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from .models import Category, Navigation, Product, ProductDetail, Review, utcnow

PRODUCT_COLUMNS = ["id", "title", "author", "price", "currency", "image_url", "in_stock", "category"]

SORTS = {
    "newest": (Product.id.desc(),),
    "price_asc": (Product.price.asc(), Product.id.asc()),
    "price_desc": (Product.price.desc(), Product.id.asc()),
    "title": (Product.title.asc(), Product.id.asc()),
}


def _pct(part: int, total: int) -> float:
    return round(part / total * 100, 1) if total else 0.0


class SQLProductRepository:
    """
    Thin repository around a SQLAlchemy session.
    - Keeps query logic out of the API layer and the collection scripts.
    - Stats are computed with pandas over plain query results.
    """

    def __init__(self, db: Session):
        self.db = db

    # ---------- Products ----------

    def _filtered(
        self,
        category: Optional[str] = None,
        navigation: Optional[str] = None,
        search: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        in_stock: Optional[bool] = None,
    ):
        stmt = select(Product)
        if category or navigation:
            stmt = stmt.join(Category, Product.category_id == Category.id)
        if category:
            stmt = stmt.where(Category.slug == category)
        if navigation:
            stmt = stmt.join(Navigation, Category.navigation_id == Navigation.id).where(
                Navigation.slug == navigation
            )
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(Product.title.ilike(like), Product.author.ilike(like)))
        if min_price is not None:
            stmt = stmt.where(Product.price >= min_price)
        if max_price is not None:
            stmt = stmt.where(Product.price <= max_price)
        if in_stock is not None:
            stmt = stmt.where(Product.in_stock == in_stock)
        return stmt

    def list_products(
        self,
        limit: int,
        offset: int,
        sort: str = "newest",
        **filters,
    ) -> Tuple[List[Product], int]:
        """Paginated, filtered listing. Returns (page rows, total matching)."""
        stmt = self._filtered(**filters)
        total = self.db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        stmt = (
            stmt.options(selectinload(Product.category))
            .order_by(*SORTS.get(sort, SORTS["newest"]))
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.scalars(stmt)), int(total)

    def get_product(self, product_id: int) -> Optional[Product]:
        stmt = (
            select(Product)
            .where(Product.id == product_id)
            .options(
                selectinload(Product.category),
                selectinload(Product.detail),
                selectinload(Product.reviews),
            )
        )
        return self.db.scalar(stmt)

    def get_by_source_id(self, source_id: str) -> Optional[Product]:
        return self.db.scalar(select(Product).where(Product.source_id == source_id))

    def source_id_exists(self, source_id: str) -> bool:
        return self.db.scalar(select(Product.id).where(Product.source_id == source_id)) is not None

    def create_product(self, data: dict, detail: Optional[dict] = None) -> Product:
        """Insert a product (and optional detail row) and commit."""
        product = Product(**{"last_scraped_at": utcnow(), **data})
        if detail:
            product.detail = ProductDetail(**detail)
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def add_review(self, product: Product, data: dict) -> Review:
        """Attach a review and refresh the detail's rating aggregates."""
        review = Review(product_id=product.id, **data)
        self.db.add(review)
        self.db.flush()

        ratings = self.db.scalars(
            select(Review.rating).where(Review.product_id == product.id, Review.rating.is_not(None))
        ).all()
        count = self.db.scalar(select(func.count(Review.id)).where(Review.product_id == product.id))
        if product.detail is None:
            product.detail = ProductDetail(genres=[], specs={})
        product.detail.reviews_count = int(count or 0)
        product.detail.ratings_avg = round(sum(ratings) / len(ratings), 2) if ratings else None
        self.db.commit()
        self.db.refresh(review)
        return review

    # ---------- Navigation / categories ----------

    def list_navigation(self) -> List[Navigation]:
        stmt = select(Navigation).options(selectinload(Navigation.categories)).order_by(Navigation.id)
        return list(self.db.scalars(stmt))

    def get_navigation(self, navigation_id: int) -> Optional[Navigation]:
        return self.db.get(Navigation, navigation_id)

    def _category_counts(self) -> dict:
        rows = self.db.execute(
            select(Product.category_id, func.count(Product.id)).group_by(Product.category_id)
        ).all()
        return {cid: int(n) for cid, n in rows if cid is not None}

    def list_categories(self, navigation: Optional[str] = None) -> List[Tuple[Category, int]]:
        """Categories with their product counts, optionally for one navigation slug."""
        stmt = select(Category).order_by(Category.title)
        if navigation:
            stmt = stmt.join(Navigation, Category.navigation_id == Navigation.id).where(
                Navigation.slug == navigation
            )
        counts = self._category_counts()
        return [(c, counts.get(c.id, 0)) for c in self.db.scalars(stmt)]

    def get_category(self, category_id: int) -> Optional[Tuple[Category, int]]:
        category = self.db.get(Category, category_id)
        if category is None:
            return None
        return category, self._category_counts().get(category.id, 0)

    def update(self, obj, changes: dict):
        for key, value in changes.items():
            setattr(obj, key, value)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def delete_category(self, category: Category) -> None:
        """Delete a category; its products stay, uncategorised."""
        for product in self.db.scalars(select(Product).where(Product.category_id == category.id)):
            product.category_id = None
        self.db.delete(category)
        self.db.commit()

    def delete_navigation(self, navigation: Navigation) -> None:
        for category in self.db.scalars(select(Category).where(Category.navigation_id == navigation.id)):
            category.navigation_id = None
        self.db.delete(navigation)
        self.db.commit()

    # ---------- Stats / insights ----------

    def _products_df(self) -> pd.DataFrame:
        stmt = (
            select(
                Product.id,
                Product.title,
                Product.author,
                Product.price,
                Product.currency,
                Product.image_url,
                Product.in_stock,
                Category.title.label("category"),
            )
            .outerjoin(Category, Product.category_id == Category.id)
        )
        rows = self.db.execute(stmt).all()
        df = pd.DataFrame([tuple(r) for r in rows], columns=PRODUCT_COLUMNS)
        df["price"] = pd.to_numeric(df["price"], errors="coerce")
        return df

    def health(self) -> dict:
        """Basic dataset status for health checks."""
        last = self.db.scalar(select(func.max(Product.last_scraped_at)))
        return {
            "status": "ok",
            "database": "connected",
            "products": int(self.db.scalar(select(func.count(Product.id))) or 0),
            "last_scraped_at": last.isoformat() if last else None,
        }

    def stats_overview(self) -> dict:
        """
        Dataset-level metrics:
          - totals per table and coverage of images/details/ISBN/publisher
          - avg/min/max price over priced products (price > 0)
        """
        df = self._products_df()
        total = int(len(df))
        details = int(self.db.scalar(select(func.count(ProductDetail.id))) or 0)
        with_isbn = int(
            self.db.scalar(select(func.count(ProductDetail.id)).where(ProductDetail.isbn.is_not(None))) or 0
        )
        with_publisher = int(
            self.db.scalar(
                select(func.count(ProductDetail.id)).where(ProductDetail.publisher.is_not(None))
            ) or 0
        )
        with_images = int(df["image_url"].notna().sum())

        priced = df.loc[df["price"] > 0, "price"]
        return {
            "total_products": total,
            "total_categories": int(self.db.scalar(select(func.count(Category.id))) or 0),
            "total_navigations": int(self.db.scalar(select(func.count(Navigation.id))) or 0),
            "total_reviews": int(self.db.scalar(select(func.count(Review.id))) or 0),
            "products_with_images": with_images,
            "products_with_details": details,
            "products_with_isbn": with_isbn,
            "products_with_publisher": with_publisher,
            "image_coverage_pct": _pct(with_images, total),
            "detail_coverage_pct": _pct(details, total),
            "avg_price": round(float(priced.mean()), 2) if not priced.empty else 0.0,
            "min_price": round(float(priced.min()), 2) if not priced.empty else 0.0,
            "max_price": round(float(priced.max()), 2) if not priced.empty else 0.0,
        }

    def stats_by_category(self, limit: Optional[int] = None) -> List[dict]:
        """
        Category-level metrics sorted by product count (desc).
        Categories without products are included with zero counts.
        """
        df = self._products_df()
        titles = [c.title for c in self.db.scalars(select(Category))]
        g = (
            df.dropna(subset=["category"])
              .groupby("category")
              .agg(count=("id", "size"), avg=("price", "mean"), min=("price", "min"), max=("price", "max"))
        )
        g = g.reindex(sorted(set(titles) | set(g.index))).reset_index().rename(columns={"index": "category"})
        g["count"] = g["count"].fillna(0).astype(int)
        g = g.sort_values(["count", "category"], ascending=[False, True])
        if limit:
            g = g.head(limit)

        out: List[dict] = []
        for _, row in g.iterrows():
            out.append({
                "category": str(row["category"]),
                "count": int(row["count"]),
                "avg_price": round(float(row["avg"]), 2) if pd.notna(row["avg"]) else 0.0,
                "min_price": round(float(row["min"]), 2) if pd.notna(row["min"]) else 0.0,
                "max_price": round(float(row["max"]), 2) if pd.notna(row["max"]) else 0.0,
            })
        return out

    def top_authors(self, limit: int = 10) -> List[dict]:
        """Most frequent authors (desc), ties broken alphabetically."""
        df = self._products_df()
        vc = df["author"].dropna().value_counts()
        top = (
            vc.rename_axis("author").reset_index(name="count")
              .sort_values(["count", "author"], ascending=[False, True])
              .head(limit)
        )
        return [{"author": str(r["author"]), "count": int(r["count"])} for _, r in top.iterrows()]

    def collection_stats(self) -> dict:
        """Final report printed after a collection run."""
        stats = self.stats_overview()
        stats["top_authors"] = self.top_authors(10)
        stats["top_categories"] = [
            {"category": c["category"], "count": c["count"]} for c in self.stats_by_category(limit=10)
        ]
        return stats

    def sample_products(self, limit: int = 5, newest: bool = True, with_images: bool = False) -> List[Product]:
        stmt = select(Product).options(selectinload(Product.detail))
        if with_images:
            stmt = stmt.where(Product.image_url.is_not(None))
        stmt = stmt.order_by(Product.id.desc() if newest else Product.id.asc()).limit(limit)
        return list(self.db.scalars(stmt))

    def detail_coverage(self, sample: int = 5) -> dict:
        """Products with/without a detail row (samples plus id range)."""
        has_detail = select(ProductDetail.product_id)
        with_stmt = select(Product).where(Product.id.in_(has_detail))
        without_stmt = select(Product).where(Product.id.not_in(has_detail))
        id_range = self.db.execute(
            select(func.min(ProductDetail.product_id), func.max(ProductDetail.product_id))
        ).one()
        return {
            "with_details": list(self.db.scalars(
                with_stmt.options(selectinload(Product.detail)).order_by(Product.id.asc()).limit(sample)
            )),
            "without_details": list(self.db.scalars(without_stmt.order_by(Product.id.desc()).limit(sample))),
            "id_range": (id_range[0], id_range[1]),
        }
