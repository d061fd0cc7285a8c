"""
    Warehouse Service API

    This module implements a FastAPI-based microservice that tracks finished goods as they
    move between the central warehouse and field riders, and the workflow that brings
    returned goods back into warehouse stock.

    The service exposes:
    - Warehouse stock endpoints (listing, admin adjustment, low-stock alerts, summary)
    - Distribution endpoints: admins hand stock out to riders
    - Return endpoints: riders request returns, admins approve them
    - Health endpoint: Provides service health status for monitoring and orchestration

    Callers must re-fetch after any mutating call; responses are never served from a cache.
"""
from typing import List, Optional
import logging
from fastapi import FastAPI, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import crud, models, monitor, schemas, auth
from .config import LOG_LEVEL
from .database import engine, get_db
from .distribution import DistributionService
from .exceptions import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    TransactionConflictError,
    Unauthorized,
    ValidationError,
    WarehouseError,
)
from .ledger import StockLedger
from .returns import ReturnWorkflow

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create database tables
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="warehouse-service")

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InsufficientStockError: status.HTTP_409_CONFLICT,
    InvalidStateError: status.HTTP_409_CONFLICT,
    TransactionConflictError: status.HTTP_409_CONFLICT,
}


@app.exception_handler(WarehouseError)
async def warehouse_error_handler(request: Request, exc: WarehouseError):
    """Translate core errors into HTTP responses."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})


def stock_response(stock: models.WarehouseStock) -> schemas.WarehouseStock:
    """Serialize a stock row with its low-stock flag computed at read time."""
    response = schemas.WarehouseStock.model_validate(stock)
    response.is_low_stock = monitor.is_low_stock(stock)
    return response


@app.get("/healthz", response_model=dict)
def health():
    """
    Health check endpoint for the warehouse service.

    Returns:
        dict: A dictionary containing the health status of the service.
            - status (str): "healthy" if the service is operational.

    Example:
        GET /healthz
        Response: {"status": "healthy"}
    """
    return {"status": "healthy"}


@app.get("/products", response_model=List[schemas.Product])
def list_products(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """List catalog products (authenticated users)."""
    return crud.list_products(db, skip=skip, limit=limit)


@app.get("/stock", response_model=List[schemas.WarehouseStock])
def list_stock(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    List warehouse stock, most recently updated first (authenticated users).

    Args:
        skip: Number of records to skip (default: 0)
        limit: Maximum number of records to return (default: 100)
        db: Database session (injected)
        current_user: Current authenticated user (injected)

    Returns:
        List of warehouse stock rows with their low-stock flag
    """
    return [stock_response(stock) for stock in crud.list_warehouse_stock(db, skip=skip, limit=limit)]


@app.get("/stock/low", response_model=List[schemas.WarehouseStock])
def list_low_stock(
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """List warehouse rows whose quantity is at or below their minimum."""
    return [stock_response(stock) for stock in monitor.list_low_stock(db)]


@app.get("/stock/summary", response_model=schemas.StockSummary)
def get_stock_summary(
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Get warehouse analytics (authenticated users).

    Returns:
        dict: total products, total quantity, low stock and out of stock counts
    """
    return monitor.stock_summary(db)


@app.get("/stock/{product_id}", response_model=schemas.WarehouseStock)
def get_stock(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Get the warehouse stock of one product (authenticated users).

    Raises:
        NotFoundError: 404 if the product was never stocked
    """
    stock = crud.get_warehouse_stock(db, product_id)
    if stock is None:
        raise NotFoundError("Warehouse stock", product_id)
    return stock_response(stock)


@app.put("/stock/{product_id}", response_model=schemas.WarehouseStock)
def adjust_stock(
    product_id: int,
    adjustment: schemas.StockAdjustment,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Set a product's warehouse quantity and minimum (admin only).

    Args:
        product_id: Catalog product to stock
        adjustment: New quantity and low-stock threshold
        db: Database session (injected)
        current_user: Current authenticated user (injected)

    Returns:
        Updated warehouse stock row
    """
    auth.authorize_admin(current_user)
    stock = StockLedger(db).adjust_warehouse_stock(product_id, adjustment.quantity, adjustment.min_stock)
    logger.info(f"User {current_user.id} adjusted stock of product {product_id}")
    return stock_response(stock)


@app.post("/distributions", response_model=schemas.Distribution, status_code=status.HTTP_201_CREATED)
def create_distribution(
    distribution: schemas.DistributionCreate,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Distribute warehouse stock to a rider (admin only).

    Raises:
        InsufficientStockError: 409 if the warehouse holds fewer units
    """
    return DistributionService(db).distribute(
        current_user,
        product_id=distribution.product_id,
        rider_id=distribution.rider_id,
        quantity=distribution.quantity,
        notes=distribution.notes,
    )


@app.get("/distributions", response_model=List[schemas.Distribution])
def list_distributions(
    rider_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Distribution history, newest first (admins see all, riders see their own).
    """
    if not current_user.is_admin:
        rider_id = current_user.id
    return DistributionService(db).list_distributions(rider_id=rider_id, skip=skip, limit=limit)


@app.get("/riders/{rider_id}/inventory", response_model=List[schemas.RiderInventory])
def get_rider_inventory(
    rider_id: int,
    in_stock_only: bool = True,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    List what a rider holds (admins, or the rider themself).

    Args:
        rider_id: Rider whose inventory to list
        in_stock_only: Hide products the rider has run out of (default: True)
    """
    auth.authorize_admin_or_self(current_user, rider_id)
    return crud.list_rider_inventory(db, rider_id, in_stock_only=in_stock_only)


@app.post("/returns", response_model=schemas.ReturnRequest, status_code=status.HTTP_201_CREATED)
def create_return(
    return_request: schemas.ReturnCreate,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Request a return of goods the calling rider holds (riders only).

    Raises:
        InsufficientStockError: 409 if the rider holds fewer units
    """
    return ReturnWorkflow(db).request_return(
        current_user,
        rider_id=current_user.id,
        product_id=return_request.product_id,
        quantity=return_request.quantity,
        reason=return_request.reason,
    )


@app.get("/returns/pending", response_model=List[schemas.ReturnRequest])
def list_pending_returns(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """List returns waiting for approval (admin only)."""
    auth.authorize_admin(current_user)
    return ReturnWorkflow(db).list_pending_returns(skip=skip, limit=limit)


@app.get("/returns", response_model=List[schemas.ReturnRequest])
def list_returns(
    rider_id: Optional[int] = None,
    return_status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Return history, newest first (admins see all, riders see their own).
    """
    if not current_user.is_admin:
        rider_id = current_user.id
    return ReturnWorkflow(db).list_returns(rider_id=rider_id, status=return_status, skip=skip, limit=limit)


@app.post("/returns/{return_id}/approve", response_model=schemas.ReturnRequest)
def approve_return(
    return_id: int,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Approve a pending return and move its stock back to the warehouse (admin only).

    Raises:
        NotFoundError: 404 if the return does not exist
        InvalidStateError: 409 if the return was already approved
        InsufficientStockError: 409 if the rider no longer holds the quantity
    """
    return ReturnWorkflow(db).approve_return(current_user, return_id)


@app.get("/settings/tax", response_model=Optional[schemas.TaxSetting])
def get_tax_setting(
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Get the active tax configuration, or null when none is active.
    """
    return crud.get_active_tax_setting(db)
