"""SQLAlchemy database models."""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Category(Base):
    """Component category (CPU, GPU, Motherboard, ...)."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    components: Mapped[list["Component"]] = relationship(
        "Component", back_populates="category"
    )


class Component(Base):
    """Catalogued hardware component."""

    __tablename__ = "components"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=False
    )
    brand: Mapped[str] = mapped_column(String(64), nullable=False)
    model: Mapped[str] = mapped_column(String(128), nullable=False)
    variant: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Relationships
    category: Mapped["Category"] = relationship("Category", back_populates="components")
    tracked_links: Mapped[list["TrackedLink"]] = relationship(
        "TrackedLink", back_populates="component", cascade="all, delete-orphan"
    )
    offers: Mapped[list["Offer"]] = relationship(
        "Offer", back_populates="component", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("brand", "model", "variant", name="uq_component_brand_model_variant"),
    )


class TrackedLink(Base):
    """External vendor product page monitored for a component."""

    __tablename__ = "tracked_links"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    component_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("components.id"), nullable=False, index=True
    )
    source_id: Mapped[str] = mapped_column(String(32), default="unknown", nullable=False)
    external_url: Mapped[str] = mapped_column(Text, nullable=False)
    external_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    match_method: Mapped[str] = mapped_column(String(16), default="manual", nullable=False)  # manual, automated
    confidence: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    last_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    component: Mapped["Component"] = relationship("Component", back_populates="tracked_links")

    __table_args__ = (
        CheckConstraint("length(external_url) > 0", name="ck_tracked_link_url_not_empty"),
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_tracked_link_confidence"),
    )


class Offer(Base):
    """Latest known price and availability from one vendor for one component."""

    __tablename__ = "offers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    component_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("components.id"), nullable=False
    )
    vendor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    source_id: Mapped[str] = mapped_column(String(32), default="scraper-auto", nullable=False)  # manual, scraper-auto
    vendor_url: Mapped[str] = mapped_column(Text, default="", nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    effective_price: Mapped[int] = mapped_column(Integer, nullable=False)
    in_stock: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    component: Mapped["Component"] = relationship("Component", back_populates="offers")

    __table_args__ = (
        UniqueConstraint("component_id", "vendor_id", name="uq_offer_component_vendor"),
    )
