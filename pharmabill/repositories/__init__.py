"""Persistence stores used by the billing services."""
from pharmabill.repositories.product_store import ProductStore
from pharmabill.repositories.sale_store import SaleStore
from pharmabill.repositories.bill_counter_store import BillCounterStore, format_bill_number, parse_bill_sequence

__all__ = ['ProductStore', 'SaleStore', 'BillCounterStore', 'format_bill_number', 'parse_bill_sequence']
