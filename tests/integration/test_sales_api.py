"""
Integration tests for the sales API: draft -> finalize -> invoice.
"""

import pytest
from decimal import Decimal

from pharmabill.models import Product, Sale


@pytest.fixture
def product_id(product):
    return product.id


@pytest.fixture
def draft_id(client):
    resp = client.post('/sales/drafts', json={'customer_name': 'John Doe', 'customer_phone': '+91-9876543220'})
    assert resp.status_code == 201
    return resp.get_json()['id']


class TestDraftEndpoints:
    """Building a bill over HTTP."""

    def test_create_draft_defaults(self, client):
        resp = client.post('/sales/drafts')
        data = resp.get_json()

        assert resp.status_code == 201
        assert data['status'] == 'DRAFT'
        assert data['payment_method'] == 'cash'
        assert data['items'] == []
        assert data['totals']['total'] == '0.00'

    def test_add_item_and_discount(self, client, draft_id, product_id):
        """Product(price=100) x3, 10% bill discount -> 302.40."""
        resp = client.post(f'/sales/drafts/{draft_id}/items', json={'product_id': product_id, 'quantity': 3})
        assert resp.status_code == 200

        resp = client.patch(f'/sales/drafts/{draft_id}', json={'discount_percent': '10'})
        totals = resp.get_json()['totals']

        assert totals['subtotal'] == '300.00'
        assert totals['discount_amount'] == '30.00'
        assert totals['tax_amount'] == '32.40'
        assert totals['cgst_amount'] == '16.20'
        assert totals['total'] == '302.40'
        assert totals['total_quantity'] == 3

    def test_insufficient_stock(self, client, draft_id, make_product):
        pid = make_product(stock=2).id

        resp = client.post(f'/sales/drafts/{draft_id}/items', json={'product_id': pid, 'quantity': 3})

        assert resp.status_code == 409
        assert resp.get_json()['available'] == 2
        assert client.get(f'/sales/drafts/{draft_id}').get_json()['items'] == []

    def test_update_and_remove_item(self, client, draft_id, product_id):
        client.post(f'/sales/drafts/{draft_id}/items', json={'product_id': product_id})

        resp = client.patch(f'/sales/drafts/{draft_id}/items/0', json={'quantity': 4})
        assert resp.get_json()['items'][0]['quantity'] == 4
        assert resp.get_json()['items'][0]['line_total'] == '400.00'

        resp = client.delete(f'/sales/drafts/{draft_id}/items/0')
        assert resp.get_json()['items'] == []

    def test_missing_product_id(self, client, draft_id):
        resp = client.post(f'/sales/drafts/{draft_id}/items', json={'quantity': 1})
        assert resp.status_code == 422

    def test_invalid_detail_field(self, client, draft_id):
        resp = client.patch(f'/sales/drafts/{draft_id}', json={'discount_percent': 150})
        data = resp.get_json()

        assert resp.status_code == 422
        assert data['status'] == 'error'
        assert data['causes']

    @pytest.mark.parametrize('body', [{'follow_up_days': 5}, {'session': 1}, {'draft_id': 7}])
    def test_reserved_keys_rejected(self, client, draft_id, body):
        assert client.post('/sales/drafts', json=body).status_code == 422

        resp = client.patch(f'/sales/drafts/{draft_id}', json=body)
        assert resp.status_code == 422
        assert resp.get_json()['causes'] == [f'Unknown draft fields: {next(iter(body))}']

    @pytest.mark.parametrize('quantity', ['Infinity', '-Infinity', 'NaN', '1e400'])
    def test_non_finite_quantity(self, client, draft_id, product_id, quantity):
        resp = client.post(
            f'/sales/drafts/{draft_id}/items',
            data=f'{{"product_id": {product_id}, "quantity": {quantity}}}',
            content_type='application/json'
        )

        assert resp.status_code == 422
        assert client.get(f'/sales/drafts/{draft_id}').get_json()['items'] == []

    def test_discard(self, client, draft_id):
        assert client.delete(f'/sales/drafts/{draft_id}').status_code == 200
        assert client.get(f'/sales/drafts/{draft_id}').status_code == 404

    def test_product_search_filters(self, client, make_product):
        make_product(name='Crocin Advance', manufacturer='GSK', category='Pain Relief')
        make_product(name='Calpol Syrup', manufacturer='GSK', category='Pediatric')

        resp = client.get('/sales/products/search?q=paracetamol&manufacturer=gsk&category=Pediatric')
        products = resp.get_json()['products']
        assert [(p['name'], p['category']) for p in products] == [('Calpol Syrup', 'Pediatric')]

    def test_product_search(self, client, product_id, make_product):
        make_product(name='Dolo 250 Syrup', stock=0)

        names = [p['name'] for p in client.get('/sales/products/search?q=dolo').get_json()['products']]
        assert names == ['Dolo 250 Syrup', 'Dolo 650']

        in_stock = client.get('/sales/products/search?q=dolo&in_stock=1').get_json()['products']
        assert [p['id'] for p in in_stock] == [product_id]


class TestFinalizeEndpoint:
    """Finalizing and reading back sales."""

    def test_finalize_and_retry(self, client, session, draft_id, product_id):
        client.post(f'/sales/drafts/{draft_id}/items', json={'product_id': product_id, 'quantity': 5})

        first = client.post(f'/sales/drafts/{draft_id}/finalize')
        second = client.post(f'/sales/drafts/{draft_id}/finalize')

        assert first.status_code == 201
        assert first.get_json()['bill_number'] == 'DHS-2024-001'
        assert second.get_json()['id'] == first.get_json()['id']
        assert session.query(Sale).count() == 1
        assert session.get(Product, product_id).stock == 0

        draft = client.get(f'/sales/drafts/{draft_id}').get_json()
        assert draft['status'] == 'FINALIZED'
        assert draft['sale_id'] == first.get_json()['id']

    def test_finalize_empty_draft(self, client, draft_id):
        resp = client.post(f'/sales/drafts/{draft_id}/finalize')

        assert resp.status_code == 422
        assert resp.get_json()['causes'] == ['Add at least one item to the sale']

    def test_finalized_draft_rejects_edits(self, client, draft_id, product_id):
        client.post(f'/sales/drafts/{draft_id}/items', json={'product_id': product_id, 'quantity': 1})
        client.post(f'/sales/drafts/{draft_id}/finalize')

        resp = client.post(f'/sales/drafts/{draft_id}/items', json={'product_id': product_id, 'quantity': 1})
        assert resp.status_code == 400

    def test_sale_detail_and_list(self, client, draft_id, product_id):
        client.post(f'/sales/drafts/{draft_id}/items', json={'product_id': product_id, 'quantity': 2})
        sale = client.post(f'/sales/drafts/{draft_id}/finalize').get_json()

        detail = client.get(f"/sales/{sale['id']}").get_json()
        assert detail['total'] == '224.00'
        assert detail['total_quantity'] == 2
        assert detail['gst_number'] == '29ABYPB7940B1ZF'
        assert Decimal(detail['subtotal']) - Decimal(detail['discount_amount']) + Decimal(detail['tax_amount']) \
            == Decimal(detail['total'])

        listing = client.get('/sales/?q=john').get_json()['sales']
        assert [s['bill_number'] for s in listing] == ['DHS-2024-001']

    def test_sale_not_found(self, client):
        resp = client.get('/sales/999')
        assert resp.status_code == 404
        assert resp.get_json()['status'] == 'error'

    @pytest.mark.parametrize('page_format', ['A4', 'A5'])
    def test_invoice_pdf(self, client, draft_id, product_id, page_format):
        client.post(f'/sales/drafts/{draft_id}/items', json={'product_id': product_id, 'quantity': 1})
        sale = client.post(f'/sales/drafts/{draft_id}/finalize').get_json()

        resp = client.get(f"/sales/{sale['id']}/invoice.pdf?format={page_format}")

        assert resp.status_code == 200
        assert resp.mimetype == 'application/pdf'
        assert resp.data.startswith(b'%PDF')
        assert f'DHS-2024-001-{page_format}.pdf' in resp.headers['Content-Disposition']

    def test_invoice_bad_format(self, client, draft_id, product_id):
        client.post(f'/sales/drafts/{draft_id}/items', json={'product_id': product_id, 'quantity': 1})
        sale = client.post(f'/sales/drafts/{draft_id}/finalize').get_json()

        assert client.get(f"/sales/{sale['id']}/invoice.pdf?format=Letter").status_code == 422


class TestCustomerSalesEndpoint:
    """Sales grouped per customer."""

    def _sell(self, client, product_id, **customer):
        draft_id = client.post('/sales/drafts', json=customer).get_json()['id']
        client.post(f'/sales/drafts/{draft_id}/items', json={'product_id': product_id, 'quantity': 1})
        return client.post(f'/sales/drafts/{draft_id}/finalize').get_json()

    def test_grouped_listing(self, client, make_product):
        pid = make_product(stock=10).id
        self._sell(client, pid, customer_name='John Doe', customer_phone='+91-9876543220')
        self._sell(client, pid, customer_name='Cash Sale')
        latest = self._sell(client, pid, customer_name='John Doe', customer_phone='+91-9876543220')

        customers = client.get('/sales/customers').get_json()['customers']

        assert [(c['customer_name'], c['customer_phone'], c['sale_count']) for c in customers] == [
            ('John Doe', '+91-9876543220', 2),
            ('Cash Sales', '', 1),
        ]
        assert customers[0]['total_amount'] == '224.00'
        assert customers[0]['last_sale_date'] == latest['created_at']
        assert [s['bill_number'] for s in customers[0]['sales']] == ['DHS-2024-003', 'DHS-2024-001']

    def test_grouped_search(self, client, make_product):
        pid = make_product(stock=10).id
        self._sell(client, pid, customer_name='John Doe', customer_phone='+91-9876543220')
        self._sell(client, pid, customer_name='Cash Sale')

        customers = client.get('/sales/customers?q=cash').get_json()['customers']
        assert [c['customer_name'] for c in customers] == ['Cash Sales']
