# ORM schema: navigation headings -> categories -> products (+ detail, reviews)

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; DateTime columns store UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Navigation(Base):
    """Top-level browse heading (e.g. Fiction, Academic)."""

    __tablename__ = "navigation"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    source_url = Column(Text)
    last_scraped_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)

    categories = relationship("Category", back_populates="navigation")

    def __repr__(self):
        return f"<Navigation(slug='{self.slug}')>"


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    navigation_id = Column(Integer, ForeignKey("navigation.id", ondelete="SET NULL"), index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    source_url = Column(Text)
    last_scraped_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)

    navigation = relationship("Navigation", back_populates="categories")
    products = relationship("Product", back_populates="category")

    def __repr__(self):
        return f"<Category(slug='{self.slug}')>"


class Product(Base):
    """One listing collected from the source storefront."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    source_id = Column(String(100), unique=True, nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), index=True)
    title = Column(String(500), nullable=False)
    author = Column(String(255), index=True)
    price = Column(Float)
    currency = Column(String(10), default="USD")
    image_url = Column(Text)
    source_url = Column(Text)
    in_stock = Column(Boolean, default=True)
    last_scraped_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow, index=True)

    category = relationship("Category", back_populates="products")
    detail = relationship(
        "ProductDetail", back_populates="product", uselist=False, cascade="all, delete-orphan"
    )
    reviews = relationship(
        "Review", back_populates="product", cascade="all, delete-orphan", order_by="Review.id"
    )

    def __repr__(self):
        return f"<Product(source_id='{self.source_id}', title='{(self.title or '')[:30]}...')>"


class ProductDetail(Base):
    __tablename__ = "product_details"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    description = Column(Text)
    isbn = Column(String(20), index=True)
    publisher = Column(String(255))
    publication_date = Column(Date)
    page_count = Column(Integer)
    genres = Column(JSON, default=list)
    specs = Column(JSON, default=dict)
    ratings_avg = Column(Float)
    reviews_count = Column(Integer, default=0)

    product = relationship("Product", back_populates="detail")


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    author = Column(String(255))
    rating = Column(Integer)
    text = Column(Text)
    review_date = Column(Date)
    helpful_count = Column(Integer, default=0)
    created_at = Column(DateTime, default=utcnow)

    product = relationship("Product", back_populates="reviews")
