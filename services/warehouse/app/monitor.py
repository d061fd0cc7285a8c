"""
Low-stock view over warehouse stock.

Nothing here is stored: every answer is computed from the current
warehouse_stock rows.
"""
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models


def is_low_stock(stock: models.WarehouseStock) -> bool:
    """A product is low on stock when its quantity is at or below its minimum."""
    return stock.quantity <= stock.min_stock


def list_low_stock(db: Session) -> List[models.WarehouseStock]:
    """
    Warehouse rows at or below their minimum, emptiest first.

    Args:
        db: Database session

    Returns:
        List of WarehouseStock objects
    """
    return (
        db.query(models.WarehouseStock)
        .filter(models.WarehouseStock.quantity <= models.WarehouseStock.min_stock)
        .order_by(models.WarehouseStock.quantity, models.WarehouseStock.product_id)
        .all()
    )


def stock_summary(db: Session) -> dict:
    """
    Warehouse analytics.

    Returns:
        dict: product count, low-stock count, out-of-stock count and total units
    """
    total_products = db.query(func.count(models.WarehouseStock.id)).scalar()

    low_stock = db.query(func.count(models.WarehouseStock.id)).filter(
        models.WarehouseStock.quantity <= models.WarehouseStock.min_stock
    ).scalar()

    out_of_stock = db.query(func.count(models.WarehouseStock.id)).filter(
        models.WarehouseStock.quantity == 0
    ).scalar()

    total_quantity = db.query(func.sum(models.WarehouseStock.quantity)).scalar() or 0

    return {
        "total_products": total_products,
        "total_quantity": total_quantity,
        "low_stock": low_stock,
        "out_of_stock": out_of_stock,
    }
