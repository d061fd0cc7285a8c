"""
Pydantic schemas for request/response validation in the Warehouse service.

These schemas define the structure of data for API requests and responses.
"""
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field


class Product(BaseModel):
    """Catalog product."""
    id: int
    sku: str
    name: str

    class Config:
        from_attributes = True


class StockAdjustment(BaseModel):
    """Schema for setting a product's warehouse stock (admin only)."""
    quantity: int = Field(..., ge=0, description="New warehouse quantity")
    min_stock: Optional[int] = Field(None, ge=0, description="Low-stock threshold, kept as is when omitted")


class WarehouseStock(BaseModel):
    """
    Schema for warehouse stock responses.

    Attributes:
        product_id (int): Product the row counts
        quantity (int): Units in the warehouse
        min_stock (int): Low-stock threshold
        is_low_stock (bool): quantity <= min_stock at read time
        updated_at (datetime): Last change
        product (Product): Catalog name and SKU
    """
    id: int
    product_id: int
    quantity: int
    min_stock: int
    is_low_stock: bool = False
    updated_at: datetime
    product: Optional[Product] = None

    class Config:
        from_attributes = True


class RiderInventory(BaseModel):
    """Schema for a rider's holding of one product."""
    rider_id: int
    product_id: int
    quantity: int
    updated_at: datetime
    product: Optional[Product] = None

    class Config:
        from_attributes = True


class DistributionCreate(BaseModel):
    """Schema for distributing warehouse stock to a rider."""
    product_id: int
    rider_id: int
    quantity: int = Field(..., gt=0, description="Units to hand out")
    notes: Optional[str] = None


class Distribution(BaseModel):
    """Schema for distribution responses."""
    id: int
    product_id: int
    rider_id: int
    quantity: int
    distributed_at: datetime
    notes: Optional[str] = None
    distributed_by: Optional[int] = None
    product: Optional[Product] = None

    class Config:
        from_attributes = True


class ReturnCreate(BaseModel):
    """Schema for a rider's return request. The rider is the caller."""
    product_id: int
    quantity: int = Field(..., gt=0, description="Units to send back")
    reason: Literal["reject", "defective", "unsold"]


class ReturnRequest(BaseModel):
    """
    Schema for return request responses.

    Attributes:
        status (str): "pending" or "approved"
        approved_at (datetime): When an admin approved it (optional)
        approved_by (int): Admin who approved it (optional)
        product (Product): Catalog name and SKU
    """
    id: int
    rider_id: int
    product_id: int
    quantity: int
    reason: str
    status: str
    returned_at: datetime
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    product: Optional[Product] = None

    class Config:
        from_attributes = True


class StockSummary(BaseModel):
    """Warehouse analytics."""
    total_products: int
    total_quantity: int
    low_stock: int
    out_of_stock: int


class TaxSetting(BaseModel):
    """Active tax configuration."""
    id: int
    tax_name: str
    tax_rate: Decimal
    is_active: bool
    updated_at: datetime

    class Config:
        from_attributes = True
