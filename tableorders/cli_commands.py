"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask create-user: Create a staff account
- flask seed-menu: Load a small demo menu
"""

import click
from decimal import Decimal

from tableorders.database import create_schema, drop_schema, get_session
from tableorders.exceptions import TableOrdersError
from tableorders.models import MenuItem, UserRole
from tableorders.services import auth_service

DEMO_MENU = [
    ('Garlic Bread', 'Starters', Decimal('4.50'), Decimal('20')),
    ('Soup of the Day', 'Starters', Decimal('5.95'), Decimal('20')),
    ('Fish and Chips', 'Mains', Decimal('14.50'), Decimal('20')),
    ('Margherita Pizza', 'Mains', Decimal('11.00'), Decimal('20')),
    ('Sticky Toffee Pudding', 'Desserts', Decimal('6.25'), Decimal('20')),
    ('Orange Juice', 'Drinks', Decimal('2.80'), Decimal('0')),
]


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables first')
    def init_db_command(drop):
        """Create the database tables."""
        if drop:
            drop_schema()
            click.echo(click.style('Dropped existing tables.', fg='yellow'))
        create_schema()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='Email address')
    @click.option('--full-name', prompt=True, help='Full name')
    @click.option('--role', type=click.Choice([r.value for r in UserRole]), default=UserRole.SERVER.value,
                  show_default=True)
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
    def create_user(email, full_name, role, password):
        """Create a staff account."""
        try:
            user = auth_service.register_user(get_session(), email, password, full_name, role)
        except TableOrdersError as e:
            click.echo(click.style(f'Error: {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style('User created.', fg='green', bold=True))
        click.echo(f'   Email: {user.email}')
        click.echo(f'   Role: {user.role}')
        click.echo(f'   ID: {user.id}')

    @app.cli.command('seed-menu')
    def seed_menu():
        """Insert the demo menu items that do not exist yet."""
        session = get_session()
        existing = {name for (name,) in session.query(MenuItem.name).all()}
        added = 0
        for name, category, price, tax_rate in DEMO_MENU:
            if name in existing:
                continue
            session.add(MenuItem(name=name, category=category, price=price, tax_rate=tax_rate, available=True))
            added += 1
        session.commit()
        click.echo(click.style(f'{added} menu items added.', fg='green'))
