"""
Distribution of warehouse stock to riders.

A distribution is a one-shot, irreversible transfer. The stock movement and
the distribution record commit together: a refused transfer leaves no
record behind.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from . import crud, models
from .auth import CurrentUser, authorize_admin
from .exceptions import InsufficientStockError, NotFoundError
from .ledger import StockLedger
from .validators import ensure, validate_quantity

logger = logging.getLogger(__name__)


class DistributionService:
    """Records warehouse → rider transfers."""

    def __init__(self, db: Session, ledger: Optional[StockLedger] = None):
        if ledger is not None and ledger.db is not db:
            raise ValueError("ledger must work in the same session as the service")
        self.db = db
        self.ledger = ledger or StockLedger(db)

    def distribute(
        self,
        principal: CurrentUser,
        product_id: int,
        rider_id: int,
        quantity: int,
        notes: Optional[str] = None,
    ) -> models.Distribution:
        """
        Hand ``quantity`` units of a product from the warehouse to a rider.

        Args:
            principal: Caller, must be an admin
            product_id: Catalog product to distribute
            rider_id: Receiving rider
            quantity: Units to move, must be positive
            notes: Optional free text stored with the record

        Returns:
            The created Distribution record

        Raises:
            Unauthorized: if the caller is not an admin
            ValidationError: if quantity is not positive
            NotFoundError: if the product is not in the catalog
            InsufficientStockError: if the warehouse holds fewer units
        """
        authorize_admin(principal)
        ensure(validate_quantity(quantity))

        def work():
            if crud.get_product(self.db, product_id) is None:
                raise NotFoundError("Product", product_id)
            self.ledger.transfer_warehouse_to_rider(product_id, rider_id, quantity)
            distribution = models.Distribution(
                product_id=product_id,
                rider_id=rider_id,
                quantity=quantity,
                distributed_at=datetime.utcnow(),
                notes=notes,
                distributed_by=principal.id,
            )
            self.db.add(distribution)
            self.db.flush()
            return distribution

        try:
            distribution = self.ledger.atomic(work)
        except InsufficientStockError as e:
            logger.warning(f"Distribution to rider {rider_id} refused: {e}")
            raise

        self.db.refresh(distribution)
        logger.info(
            f"Distributed {quantity} units of product {product_id} to rider {rider_id} "
            f"(distribution {distribution.id})"
        )
        return distribution

    def list_distributions(
        self,
        rider_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[models.Distribution]:
        """
        Distribution history, newest first.

        Args:
            rider_id: Only return distributions to this rider
            skip: Number of records to skip (offset)
            limit: Maximum number of records to return
        """
        query = self.db.query(models.Distribution)
        if rider_id is not None:
            query = query.filter(models.Distribution.rider_id == rider_id)
        return (
            query.order_by(models.Distribution.distributed_at.desc(), models.Distribution.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
