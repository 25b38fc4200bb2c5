"""
Flask CLI commands for database setup.

Commands:
- flask init-db: Create all tables
- flask seed-products: Load a small demo catalog
"""
from datetime import date
from decimal import Decimal

import click

from pharmabill import database
from pharmabill.models import Product

DEMO_PRODUCTS = [
    {'name': 'AB PHYLLINE CAP', 'generic_name': 'Acebrophylline', 'composition': 'Acebrophylline 100mg',
     'manufacturer': 'Sun Pharma', 'category': 'Respiratory', 'batch': 'GTC2188A', 'hsn_code': '3004', 'pack_units': '1x10',
     'expiry_date': date(2026, 10, 31), 'mrp': Decimal('160.00'), 'price': Decimal('148.20'), 'stock': 40},
    {'name': 'ACECLO PLUS TAB', 'generic_name': 'Aceclofenac + Paracetamol',
     'composition': 'Aceclofenac 100mg + Paracetamol 325mg', 'manufacturer': 'Aristo',
     'category': 'Pain Relief', 'batch': 'AC1123', 'hsn_code': '3004', 'pack_units': '1x10',
     'expiry_date': date(2027, 3, 31), 'mrp': Decimal('98.00'), 'price': Decimal('90.85'), 'stock': 25},
    {'name': 'ACEMIZ 100MG TAB', 'generic_name': 'Aceclofenac', 'composition': 'Aceclofenac 100mg',
     'manufacturer': 'Lupin', 'category': 'Pain Relief', 'batch': 'LM7761', 'hsn_code': '3004', 'pack_units': '1x10',
     'expiry_date': date(2026, 12, 31), 'mrp': Decimal('80.00'), 'price': Decimal('73.65'), 'stock': 12},
]


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        database.create_all()
        click.echo(click.style('Tables created.', fg='green'))

    @app.cli.command('seed-products')
    def seed_products():
        """Insert the demo catalog (skips names that already exist)."""
        session = database.get_session()
        created = 0
        try:
            for data in DEMO_PRODUCTS:
                if session.query(Product).filter_by(name=data['name']).first():
                    continue
                session.add(Product(cgst_rate=Decimal('6'), sgst_rate=Decimal('6'), **data))
                created += 1
            session.commit()
        except Exception as e:
            session.rollback()
            click.echo(click.style(f'Error seeding products: {e}', fg='red'))
            raise SystemExit(1)
        click.echo(click.style(f'{created} products created.', fg='green'))
