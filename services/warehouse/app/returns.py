"""
Return workflow: riders ask to send goods back, admins approve.

A return request starts as "pending" and moves exactly once to "approved".
Requesting a return leaves stock untouched because the goods are still with
the rider; approval flips the status and moves the quantity from the rider
to the warehouse in the same transaction, so a second approval can never
credit the warehouse twice.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from . import crud, models
from .auth import CurrentUser, authorize_admin, authorize_rider
from .exceptions import InsufficientStockError, InvalidStateError, NotFoundError
from .ledger import StockLedger, rider_holder
from .validators import (
    APPROVED,
    PENDING,
    ensure,
    statuses_leading_to,
    validate_quantity,
    validate_return_reason,
    validate_return_status_transition,
)

logger = logging.getLogger(__name__)


class ReturnWorkflow:
    """State machine over return requests."""

    def __init__(self, db: Session, ledger: Optional[StockLedger] = None):
        if ledger is not None and ledger.db is not db:
            raise ValueError("ledger must work in the same session as the service")
        self.db = db
        self.ledger = ledger or StockLedger(db)

    def request_return(
        self,
        principal: CurrentUser,
        rider_id: int,
        product_id: int,
        quantity: int,
        reason: str,
    ) -> models.ReturnRequest:
        """
        Open a pending return for goods the rider currently holds.

        The rider's inventory is read fresh from the database, never from a
        cached copy.

        Raises:
            Unauthorized: if the caller is not this rider
            ValidationError: for a non-positive quantity or unknown reason
            NotFoundError: if the product is not in the catalog
            InsufficientStockError: if the rider holds fewer units
        """
        authorize_rider(principal, rider_id)
        ensure(validate_quantity(quantity))
        ensure(validate_return_reason(reason))

        def work():
            if crud.get_product(self.db, product_id) is None:
                raise NotFoundError("Product", product_id)

            inventory = crud.get_rider_inventory(self.db, rider_id, product_id)
            available = inventory.quantity if inventory else 0
            if quantity > available:
                raise InsufficientStockError(product_id, rider_holder(rider_id), available, quantity)

            request = models.ReturnRequest(
                rider_id=rider_id,
                product_id=product_id,
                quantity=quantity,
                reason=reason,
                status=PENDING,
                returned_at=datetime.utcnow(),
            )
            self.db.add(request)
            self.db.flush()
            return request

        try:
            request = self.ledger.atomic(work)
        except InsufficientStockError as e:
            logger.warning(f"Return refused for rider {rider_id}: {e}")
            raise

        self.db.refresh(request)
        logger.info(f"Return {request.id} requested by rider {rider_id}: {quantity} x product {product_id} ({reason})")
        return request

    def approve_return(self, principal: CurrentUser, return_id: int) -> models.ReturnRequest:
        """
        Approve a pending return and move its quantity back to the warehouse.

        The status change and the stock transfer commit together or not at
        all. Of several concurrent approvals only the first sees "pending".

        Raises:
            Unauthorized: if the caller is not an admin
            NotFoundError: if no return has this id
            InvalidStateError: if the return is not pending
            InsufficientStockError: if the rider no longer holds the quantity
        """
        authorize_admin(principal)

        def work():
            result = self.db.execute(
                update(models.ReturnRequest)
                .where(
                    models.ReturnRequest.id == return_id,
                    models.ReturnRequest.status.in_(statuses_leading_to(APPROVED)),
                )
                .values(status=APPROVED, approved_at=datetime.utcnow(), approved_by=principal.id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                existing = crud.get_return(self.db, return_id)
                if existing is None:
                    raise NotFoundError("Return", return_id)
                _, message = validate_return_status_transition(existing.status, APPROVED)
                logger.warning(f"Return {return_id} not approved: {message}")
                raise InvalidStateError(return_id, existing.status, APPROVED)

            request = crud.get_return(self.db, return_id)
            self.ledger.transfer_rider_to_warehouse(request.product_id, request.rider_id, request.quantity)
            return request

        try:
            request = self.ledger.atomic(work)
        except InsufficientStockError as e:
            logger.warning(f"Return {return_id} not approved: {e}")
            raise

        self.db.refresh(request)
        logger.info(
            f"Return {return_id} approved: {request.quantity} x product {request.product_id} "
            f"moved from rider {request.rider_id} to warehouse"
        )
        return request

    def list_pending_returns(self, skip: int = 0, limit: int = 100) -> List[models.ReturnRequest]:
        """Returns waiting for approval, newest first."""
        return self.list_returns(status=PENDING, skip=skip, limit=limit)

    def list_returns(
        self,
        rider_id: Optional[int] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[models.ReturnRequest]:
        """
        Return history, newest first.

        Args:
            rider_id: Only return requests made by this rider
            status: Only return requests in this status
            skip: Number of records to skip (offset)
            limit: Maximum number of records to return
        """
        query = self.db.query(models.ReturnRequest)
        if rider_id is not None:
            query = query.filter(models.ReturnRequest.rider_id == rider_id)
        if status is not None:
            query = query.filter(models.ReturnRequest.status == status)
        return (
            query.order_by(models.ReturnRequest.returned_at.desc(), models.ReturnRequest.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
