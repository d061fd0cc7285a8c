"""
SQLAlchemy ORM models for the Warehouse service.

Defines the database schema for the catalog, the two quantity tables
(warehouse stock and rider inventory), the distribution log and return
requests.
"""
from datetime import datetime
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Boolean,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from .database import Base
from .config import DEFAULT_MIN_STOCK


class Product(Base):
    """
    Catalog product. Read-only from this service's point of view.

    Attributes:
        id (int): Primary key
        sku (str): Stock Keeping Unit (unique identifier for the product)
        name (str): Display name
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)


class WarehouseStock(Base):
    """
    Quantity of a product held in the central warehouse.

    Attributes:
        id (int): Primary key
        product_id (int): Product this row counts (one row per product)
        quantity (int): Units on hand, never negative
        min_stock (int): Threshold at or below which the product is low on stock
        updated_at (datetime): Last time quantity or threshold changed
    """
    __tablename__ = "warehouse_stock"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_warehouse_stock_quantity_non_negative"),
        CheckConstraint("min_stock >= 0", name="ck_warehouse_stock_min_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), unique=True, nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=DEFAULT_MIN_STOCK)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    product = relationship("Product")


class RiderInventory(Base):
    """
    Quantity of a product currently held by a rider.

    A row is created on the first distribution of the product to the rider
    and stays in place when its quantity drops to zero.
    """
    __tablename__ = "rider_inventory"
    __table_args__ = (
        UniqueConstraint("rider_id", "product_id", name="uq_rider_inventory_rider_product"),
        CheckConstraint("quantity >= 0", name="ck_rider_inventory_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    rider_id = Column(Integer, nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    product = relationship("Product")


class Distribution(Base):
    """
    Completed transfer of stock from the warehouse to a rider.

    Rows are append-only: nothing updates or deletes a distribution.

    Attributes:
        id (int): Primary key, auto-incrementing
        product_id (int): Product that was handed out
        rider_id (int): Rider who received it
        quantity (int): Units transferred, always positive
        distributed_at (datetime): When the transfer committed
        notes (str): Free text entered by the admin (optional)
        distributed_by (int): Admin user who recorded the distribution
    """
    __tablename__ = "distributions"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_distributions_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    rider_id = Column(Integer, nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    distributed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    notes = Column(Text, nullable=True)
    distributed_by = Column(Integer, nullable=True)

    product = relationship("Product")


class ReturnRequest(Base):
    """
    Rider request to send goods back to the warehouse.

    Created as "pending"; an admin approval flips it to "approved" and moves
    the quantity from the rider back into warehouse stock.
    """
    __tablename__ = "returns"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_returns_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    rider_id = Column(Integer, nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)
    returned_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(Integer, nullable=True)

    product = relationship("Product")


class TaxSetting(Base):
    """Tax configuration record. Only the active one is ever read."""
    __tablename__ = "tax_settings"

    id = Column(Integer, primary_key=True, index=True)
    tax_name = Column(String, nullable=False, default="PPN")
    tax_rate = Column(Numeric(5, 2), nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
