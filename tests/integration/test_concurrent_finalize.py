"""
Concurrent finalization against one store counter.

Each terminal gets its own session on a shared SQLite file.
"""

import threading
import pytest
from decimal import Decimal

from sqlalchemy.orm import sessionmaker

from pharmabill.database import Base, build_engine
from pharmabill.exceptions import InsufficientStockError
from pharmabill.models import Product, Sale
from pharmabill.services import sale_draft_service as drafts
from pharmabill.services import sales_service


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'store.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


def _setup(factory, stock, drafts_count):
    with factory() as session:
        product = Product(name='Dolo 650', batch='D0650', hsn_code='3004', mrp=Decimal('35.00'),
                          price=Decimal('30.00'), stock=stock, cgst_rate=Decimal('6'), sgst_rate=Decimal('6'))
        session.add(product)
        session.flush()
        draft_ids = []
        for n in range(drafts_count):
            draft = drafts.create_draft(session, customer_name=f'Customer {n}')
            drafts.add_item(session, draft.id, product.id, 1)
            draft_ids.append(draft.id)
        session.commit()
        return product.id, draft_ids


def _finalize_all(factory, draft_ids):
    barrier = threading.Barrier(len(draft_ids))
    results, errors = [], []

    def terminal(draft_id):
        session = factory()
        try:
            barrier.wait()
            results.append(sales_service.finalize_sale(session, draft_id).bill_number)
        except Exception as e:
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=terminal, args=(d,)) for d in draft_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


def test_two_terminals_get_distinct_bill_numbers(session_factory):
    product_id, draft_ids = _setup(session_factory, stock=10, drafts_count=2)

    results, errors = _finalize_all(session_factory, draft_ids)

    assert errors == []
    assert sorted(results) == ['DHS-2024-001', 'DHS-2024-002']
    with session_factory() as session:
        assert session.get(Product, product_id).stock == 8


def test_stock_never_goes_negative(session_factory):
    product_id, draft_ids = _setup(session_factory, stock=3, drafts_count=6)

    results, errors = _finalize_all(session_factory, draft_ids)

    assert sorted(results) == ['DHS-2024-001', 'DHS-2024-002', 'DHS-2024-003']
    assert len(errors) == 3
    assert all(isinstance(e, InsufficientStockError) for e in errors)
    with session_factory() as session:
        assert session.get(Product, product_id).stock == 0
        assert session.query(Sale).count() == 3
