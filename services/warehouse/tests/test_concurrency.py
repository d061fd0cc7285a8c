"""
Concurrency tests: real threads, one session each, racing on the same rows.

Each worker waits on a barrier so the calls start together. The assertions
only rely on what the workers report, never on a particular interleaving.
"""
from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

from app import crud, models
from app.distribution import DistributionService
from app.exceptions import InsufficientStockError, InvalidStateError, TransactionConflictError
from app.ledger import StockLedger
from app.returns import ReturnWorkflow

from conftest import RIDER_A_ID, RIDER_B_ID

WORKERS = 8


def run_concurrently(session_factory, calls):
    """
    Run each ``call(session)`` in its own thread and session.

    Returns:
        List of ("ok", result) or ("error", exception) tuples, one per call
    """
    barrier = Barrier(len(calls))

    def worker(call):
        session = session_factory()
        try:
            barrier.wait()
            return "ok", call(session)
        except (InsufficientStockError, InvalidStateError, TransactionConflictError) as e:
            return "error", e
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(calls)) as executor:
        return list(executor.map(worker, calls))


def test_concurrent_distributions_never_oversell(db, session_factory, ledger, products, admin):
    product_id = products["SKU-1"]
    ledger.adjust_warehouse_stock(product_id, quantity=50, min_stock=5)
    db.close()

    def distribute(session):
        service = DistributionService(session, StockLedger(session, retry_backoff=0.01))
        return service.distribute(admin, product_id, RIDER_A_ID, 10).quantity

    outcomes = run_concurrently(session_factory, [distribute] * WORKERS)

    succeeded = [value for kind, value in outcomes if kind == "ok"]
    assert sum(succeeded) <= 50
    assert all(isinstance(value, InsufficientStockError) for kind, value in outcomes if kind == "error")

    stock = crud.get_warehouse_stock(db, product_id)
    assert stock.quantity >= 0
    assert stock.quantity == 50 - sum(succeeded)
    assert crud.get_rider_inventory(db, RIDER_A_ID, product_id).quantity == sum(succeeded)
    assert db.query(models.Distribution).count() == len(succeeded)


def test_concurrent_transfers_with_uneven_sizes(db, session_factory, ledger, products):
    product_id = products["SKU-2"]
    ledger.adjust_warehouse_stock(product_id, quantity=30, min_stock=5)
    db.close()
    sizes = [4, 7, 9, 11, 13, 3, 8, 6]

    def transfer(size, rider_id):
        def call(session):
            StockLedger(session, retry_backoff=0.01).transfer_warehouse_to_rider(product_id, rider_id, size)
            return size
        return call

    calls = [transfer(size, RIDER_A_ID if i % 2 else RIDER_B_ID) for i, size in enumerate(sizes)]
    outcomes = run_concurrently(session_factory, calls)

    moved = sum(value for kind, value in outcomes if kind == "ok")
    held = sum(
        row.quantity
        for rider_id in (RIDER_A_ID, RIDER_B_ID)
        for row in crud.list_rider_inventory(db, rider_id)
        if row.product_id == product_id
    )
    assert crud.get_warehouse_stock(db, product_id).quantity == 30 - moved
    assert held == moved


def test_concurrent_approvals_credit_once(db, session_factory, ledger, products, admin, rider_a):
    product_id = products["SKU-1"]
    ledger.adjust_warehouse_stock(product_id, quantity=100, min_stock=10)
    DistributionService(db, ledger).distribute(admin, product_id, RIDER_A_ID, 30)
    request = ReturnWorkflow(db, ledger).request_return(rider_a, RIDER_A_ID, product_id, 20, "unsold")
    return_id = request.id
    db.close()

    def approve(session):
        workflow = ReturnWorkflow(session, StockLedger(session, retry_backoff=0.01))
        return workflow.approve_return(admin, return_id).status

    outcomes = run_concurrently(session_factory, [approve] * WORKERS)

    assert [value for kind, value in outcomes if kind == "ok"] == ["approved"]
    assert all(isinstance(value, InvalidStateError) for kind, value in outcomes if kind == "error")
    assert crud.get_warehouse_stock(db, product_id).quantity == 90
    assert crud.get_rider_inventory(db, RIDER_A_ID, product_id).quantity == 10


def test_first_distribution_to_a_rider_creates_one_row(db, session_factory, ledger, products, admin):
    product_id = products["SKU-1"]
    ledger.adjust_warehouse_stock(product_id, quantity=100, min_stock=10)
    db.close()

    def distribute(session):
        service = DistributionService(session, StockLedger(session, retry_backoff=0.01))
        return service.distribute(admin, product_id, RIDER_B_ID, 1).quantity

    outcomes = run_concurrently(session_factory, [distribute] * WORKERS)

    assert all(kind == "ok" for kind, _ in outcomes)
    rows = crud.list_rider_inventory(db, RIDER_B_ID)
    assert len(rows) == 1
    assert rows[0].quantity == WORKERS
    assert crud.get_warehouse_stock(db, product_id).quantity == 100 - WORKERS

