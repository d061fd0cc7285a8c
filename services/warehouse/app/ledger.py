"""
Stock ledger for the Warehouse service.

Owns the two quantity tables (warehouse stock and rider inventory) and is
the only module that changes a quantity. Every change is a single
conditional UPDATE scoped to the row it touches, so the availability check
and the write cannot be separated by a concurrent transaction, and
operations on different rows never wait on each other.

Usage:
    ledger = StockLedger(db)
    ledger.adjust_warehouse_stock(product_id, quantity=100, min_stock=10)
    ledger.adjust_warehouse_stock(product_id, quantity=80)  # keeps min_stock=10
    ledger.transfer_warehouse_to_rider(product_id, rider_id, 30)

    # Several steps as one transaction
    ledger.atomic(lambda: (step_one(), ledger.transfer_rider_to_warehouse(...)))
"""
import logging
import time
from datetime import datetime
from typing import Callable, Optional, TypeVar

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from . import crud, models
from .config import DEFAULT_MIN_STOCK, LEDGER_MAX_RETRIES, LEDGER_RETRY_BACKOFF
from .exceptions import InsufficientStockError, NotFoundError, TransactionConflictError
from .validators import ensure, validate_quantity, validate_stock_level

logger = logging.getLogger(__name__)

T = TypeVar("T")

WAREHOUSE = "warehouse"

# serialization_failure, deadlock_detected, lock_not_available
CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}


def is_transaction_conflict(error: OperationalError) -> bool:
    """Tell contention failures apart from real database errors."""
    sqlstate = getattr(error.orig, "pgcode", None) or getattr(error.orig, "sqlstate", None)
    if sqlstate in CONFLICT_SQLSTATES:
        return True
    message = str(error.orig).lower()
    return "database is locked" in message or "database table is locked" in message


def rider_holder(rider_id: int) -> str:
    return f"rider {rider_id}"


class StockLedger:
    """
    Transactional quantity movements between the warehouse and riders.

    Args:
        db: Database session the ledger works in
        max_retries: Extra attempts allowed after a transaction conflict
        retry_backoff: Base delay in seconds between attempts
    """

    def __init__(
        self,
        db: Session,
        max_retries: int = LEDGER_MAX_RETRIES,
        retry_backoff: float = LEDGER_RETRY_BACKOFF,
    ):
        self.db = db
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self._depth = 0

    def atomic(self, work: Callable[[], T]) -> T:
        """
        Run ``work`` as one transaction.

        Commits when ``work`` returns and rolls back when it raises. A call
        made from inside another ``atomic`` joins the outer transaction.
        Transaction conflicts re-run ``work`` from scratch up to
        ``max_retries`` times; every other error propagates unchanged.

        Raises:
            TransactionConflictError: if every attempt hit a conflict
        """
        if self._depth:
            return work()

        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            self._depth += 1
            try:
                result = work()
                self.db.commit()
                return result
            except OperationalError as e:
                self.db.rollback()
                if not is_transaction_conflict(e):
                    raise
                if attempt == attempts:
                    logger.error(f"Giving up after {attempts} conflicting attempts: {e.orig}")
                    raise TransactionConflictError(attempts) from e
                logger.warning(f"Transaction conflict on attempt {attempt}/{attempts}, retrying: {e.orig}")
                time.sleep(self.retry_backoff * attempt)
            except Exception:
                self.db.rollback()
                raise
            finally:
                self._depth -= 1

    def adjust_warehouse_stock(
        self,
        product_id: int,
        quantity: int,
        min_stock: Optional[int] = None,
    ) -> models.WarehouseStock:
        """
        Set the warehouse quantity and low-stock threshold of a product.

        Creates the stock row on first use. This is the only operation that
        changes the total quantity of a product across warehouse and riders.

        Args:
            product_id: Catalog product to stock
            quantity: New absolute warehouse quantity
            min_stock: Low-stock threshold. When omitted the current threshold
                is kept, and a new row starts at DEFAULT_MIN_STOCK

        Returns:
            The updated WarehouseStock row

        Raises:
            ValidationError: if quantity or min_stock is negative
            NotFoundError: if the product is not in the catalog
        """
        ensure(validate_stock_level(quantity, "quantity"))
        if min_stock is not None:
            ensure(validate_stock_level(min_stock, "min_stock"))

        def work():
            if crud.get_product(self.db, product_id) is None:
                raise NotFoundError("Product", product_id)

            values = {"quantity": quantity, "updated_at": datetime.utcnow()}
            if min_stock is not None:
                values["min_stock"] = min_stock
            if not self._update_warehouse_row(product_id, values):
                row = models.WarehouseStock(
                    product_id=product_id,
                    quantity=quantity,
                    min_stock=values.get("min_stock", DEFAULT_MIN_STOCK),
                    updated_at=values["updated_at"],
                )
                if not self._insert_row(row):
                    self._update_warehouse_row(product_id, values)
            return crud.get_warehouse_stock(self.db, product_id)

        stock = self.atomic(work)
        self.db.refresh(stock)
        logger.info(f"Warehouse stock for product {product_id} set to {quantity} (min {stock.min_stock})")
        return stock

    def transfer_warehouse_to_rider(self, product_id: int, rider_id: int, quantity: int) -> models.RiderInventory:
        """
        Move ``quantity`` units of a product from the warehouse to a rider.

        Returns:
            The rider's inventory row after the transfer

        Raises:
            ValidationError: if quantity is not positive
            InsufficientStockError: if the warehouse holds fewer units
        """
        ensure(validate_quantity(quantity))

        def work():
            self._debit_warehouse(product_id, quantity)
            self._credit_rider(rider_id, product_id, quantity)
            logger.debug(f"Moved {quantity} units of product {product_id} from warehouse to rider {rider_id}")
            return crud.get_rider_inventory(self.db, rider_id, product_id)

        return self.atomic(work)

    def transfer_rider_to_warehouse(self, product_id: int, rider_id: int, quantity: int) -> models.WarehouseStock:
        """
        Move ``quantity`` units of a product from a rider back to the warehouse.

        Returns:
            The warehouse stock row after the transfer

        Raises:
            ValidationError: if quantity is not positive
            InsufficientStockError: if the rider holds fewer units
        """
        ensure(validate_quantity(quantity))

        def work():
            self._debit_rider(rider_id, product_id, quantity)
            self._credit_warehouse(product_id, quantity)
            logger.debug(f"Moved {quantity} units of product {product_id} from rider {rider_id} to warehouse")
            return crud.get_warehouse_stock(self.db, product_id)

        return self.atomic(work)

    def _debit_warehouse(self, product_id: int, quantity: int) -> None:
        result = self.db.execute(
            update(models.WarehouseStock)
            .where(
                models.WarehouseStock.product_id == product_id,
                models.WarehouseStock.quantity >= quantity,
            )
            .values(quantity=models.WarehouseStock.quantity - quantity, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            stock = crud.get_warehouse_stock(self.db, product_id)
            available = stock.quantity if stock else 0
            raise InsufficientStockError(product_id, WAREHOUSE, available, quantity)

    def _credit_warehouse(self, product_id: int, quantity: int) -> None:
        values = {"quantity": models.WarehouseStock.quantity + quantity, "updated_at": datetime.utcnow()}
        if self._update_warehouse_row(product_id, values):
            return
        row = models.WarehouseStock(
            product_id=product_id,
            quantity=quantity,
            min_stock=DEFAULT_MIN_STOCK,
            updated_at=datetime.utcnow(),
        )
        if not self._insert_row(row):
            self._update_warehouse_row(product_id, values)

    def _debit_rider(self, rider_id: int, product_id: int, quantity: int) -> None:
        result = self.db.execute(
            update(models.RiderInventory)
            .where(
                models.RiderInventory.rider_id == rider_id,
                models.RiderInventory.product_id == product_id,
                models.RiderInventory.quantity >= quantity,
            )
            .values(quantity=models.RiderInventory.quantity - quantity, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            inventory = crud.get_rider_inventory(self.db, rider_id, product_id)
            available = inventory.quantity if inventory else 0
            raise InsufficientStockError(product_id, rider_holder(rider_id), available, quantity)

    def _credit_rider(self, rider_id: int, product_id: int, quantity: int) -> None:
        values = {"quantity": models.RiderInventory.quantity + quantity, "updated_at": datetime.utcnow()}
        if self._update_rider_row(rider_id, product_id, values):
            return
        row = models.RiderInventory(
            rider_id=rider_id,
            product_id=product_id,
            quantity=quantity,
            updated_at=datetime.utcnow(),
        )
        if not self._insert_row(row):
            self._update_rider_row(rider_id, product_id, values)

    def _update_warehouse_row(self, product_id: int, values: dict) -> bool:
        result = self.db.execute(
            update(models.WarehouseStock)
            .where(models.WarehouseStock.product_id == product_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _update_rider_row(self, rider_id: int, product_id: int, values: dict) -> bool:
        result = self.db.execute(
            update(models.RiderInventory)
            .where(
                models.RiderInventory.rider_id == rider_id,
                models.RiderInventory.product_id == product_id,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _insert_row(self, row) -> bool:
        """
        Insert a first-time stock row inside a savepoint.

        Returns False when a concurrent transaction created the same row
        first; the caller then updates that row instead.
        """
        savepoint = self.db.begin_nested()
        try:
            self.db.add(row)
            self.db.flush()
            savepoint.commit()
            return True
        except IntegrityError:
            savepoint.rollback()
            logger.debug(f"Lost insert race for {row.__tablename__}, updating existing row")
            return False
