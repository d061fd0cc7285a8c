"""
Read operations for the Warehouse service.

This module contains the catalog lookups and the read-only listings the
API renders. Every function reads live rows; nothing is cached, so a caller
that re-fetches after a mutation always sees its own writes.
"""
from typing import List, Optional
from sqlalchemy.orm import Session
from . import models

def get_product(db: Session, product_id: int) -> Optional[models.Product]:
    """
    Retrieve a catalog product by ID.

    Args:
        db: Database session
        product_id: ID of the product to retrieve

    Returns:
        Product object or None if not found
    """
    return db.query(models.Product).filter(models.Product.id == product_id).first()

def get_product_by_sku(db: Session, sku: str) -> Optional[models.Product]:
    """
    Retrieve a catalog product by SKU.

    Args:
        db: Database session
        sku: SKU to search for

    Returns:
        Product object or None if not found
    """
    return db.query(models.Product).filter(models.Product.sku == sku).first()

def list_products(db: Session, skip: int = 0, limit: int = 100) -> List[models.Product]:
    """Catalog products ordered by name."""
    return db.query(models.Product).order_by(models.Product.name).offset(skip).limit(limit).all()

def get_warehouse_stock(db: Session, product_id: int) -> Optional[models.WarehouseStock]:
    """
    Retrieve the warehouse stock row for a product.

    Args:
        db: Database session
        product_id: Product to look up

    Returns:
        WarehouseStock object or None if the product was never stocked
    """
    return (
        db.query(models.WarehouseStock)
        .filter(models.WarehouseStock.product_id == product_id)
        .populate_existing()
        .first()
    )

def list_warehouse_stock(db: Session, skip: int = 0, limit: int = 100) -> List[models.WarehouseStock]:
    """
    Retrieve warehouse stock rows, most recently updated first.

    Args:
        db: Database session
        skip: Number of records to skip (offset)
        limit: Maximum number of records to return

    Returns:
        List of WarehouseStock objects
    """
    return (
        db.query(models.WarehouseStock)
        .order_by(models.WarehouseStock.updated_at.desc(), models.WarehouseStock.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

def get_rider_inventory(db: Session, rider_id: int, product_id: int) -> Optional[models.RiderInventory]:
    """
    Retrieve what a rider currently holds of a product.

    Returns:
        RiderInventory object or None if the rider never received the product
    """
    return (
        db.query(models.RiderInventory)
        .filter(
            models.RiderInventory.rider_id == rider_id,
            models.RiderInventory.product_id == product_id,
        )
        .populate_existing()
        .first()
    )

def list_rider_inventory(db: Session, rider_id: int, in_stock_only: bool = False) -> List[models.RiderInventory]:
    """
    Retrieve a rider's inventory rows.

    Args:
        db: Database session
        rider_id: Rider whose inventory to list
        in_stock_only: Skip rows whose quantity dropped to zero

    Returns:
        List of RiderInventory objects ordered by product
    """
    query = db.query(models.RiderInventory).filter(models.RiderInventory.rider_id == rider_id)
    if in_stock_only:
        query = query.filter(models.RiderInventory.quantity > 0)
    return query.order_by(models.RiderInventory.product_id).all()

def get_return(db: Session, return_id: int) -> Optional[models.ReturnRequest]:
    """Retrieve a return request by ID, bypassing any stale copy in the session."""
    return (
        db.query(models.ReturnRequest)
        .filter(models.ReturnRequest.id == return_id)
        .populate_existing()
        .first()
    )

def get_active_tax_setting(db: Session) -> Optional[models.TaxSetting]:
    """
    Retrieve the active tax configuration.

    No active record is a valid state and means no tax applies.
    """
    return (
        db.query(models.TaxSetting)
        .filter(models.TaxSetting.is_active.is_(True))
        .order_by(models.TaxSetting.updated_at.desc(), models.TaxSetting.id.desc())
        .first()
    )
