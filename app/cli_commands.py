"""
Flask CLI commands for database setup and demo data.

Commands:
- flask init-db: Create all tables
- flask seed-demo: Create a demo tenant with a published menu live at one location
"""

import click
from flask import current_app
from app.database import db_session, create_all
from app.exceptions import CatalogError
from app.models import Tenant
from app.services import catalog_service, menu_line_service, publication_service


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('seed-demo')
    @click.option('--slug', default='demo', show_default=True, help='Tenant slug')
    @click.option('--locale', default=None, help='Tenant default locale (DEFAULT_LOCALE when omitted)')
    def seed_demo(slug, locale):
        """Create a demo tenant, location, catalog and a live published menu."""
        locale = locale or current_app.config.get('DEFAULT_LOCALE', 'en-US')
        if db_session.query(Tenant).filter_by(slug=slug).first():
            click.echo(click.style(f'Tenant "{slug}" already exists, nothing to do.', fg='yellow'))
            return

        tenant = Tenant(slug=slug, name='Demo Bistro', default_locale=locale, default_currency='EUR', active=True)
        db_session.add(tenant)
        db_session.commit()

        try:
            _seed_catalog(tenant.id, locale)
        except CatalogError as e:
            click.echo(click.style(f'Seeding failed: {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style('\nDemo tenant created!', fg='green', bold=True))
        click.echo(f'   Tenant ID: {tenant.id}')
        click.echo(f'   Public menu: /api/t/{slug}/l/centro/menu')


def _seed_catalog(tenant_id, locale):
    location = catalog_service.create_location(db_session, tenant_id, 'Centro', 'centro', city='Madrid')

    starters = catalog_service.create_section(db_session, tenant_id, [
        {'locale': locale, 'title': 'Starters'},
        {'locale': 'es-ES', 'title': 'Entrantes'},
    ])
    mains = catalog_service.create_section(db_session, tenant_id, [
        {'locale': locale, 'title': 'Mains'},
        {'locale': 'es-ES', 'title': 'Principales'},
    ])
    gluten = catalog_service.create_allergen(db_session, tenant_id, 'GLUTEN', 'Gluten')

    bread = catalog_service.create_item(db_session, tenant_id, [
        {'locale': locale, 'name': 'Garlic bread'},
        {'locale': 'es-ES', 'name': 'Pan de ajo'},
    ], price='4.50', allergen_ids=[gluten.id])
    soup = catalog_service.create_item(db_session, tenant_id, [
        {'locale': locale, 'name': 'Tomato soup', 'description': 'Served cold in summer'},
    ], price='6.00')
    paella = catalog_service.create_item(db_session, tenant_id, [
        {'locale': locale, 'name': 'Seafood paella'},
        {'locale': 'es-ES', 'name': 'Paella de marisco'},
    ], price='18.00')

    menu = catalog_service.create_menu(db_session, tenant_id, 'MAIN', [
        {'locale': locale, 'name': 'Main menu'},
        {'locale': 'es-ES', 'name': 'Carta'},
    ])
    starters_line = menu_line_service.insert_line(db_session, tenant_id, menu.id, 'section', starters.id)
    mains_line = menu_line_service.insert_line(db_session, tenant_id, menu.id, 'section', mains.id)
    menu_line_service.insert_line(db_session, tenant_id, menu.id, 'item', bread.id, parent_line_id=starters_line.id)
    menu_line_service.insert_line(db_session, tenant_id, menu.id, 'item', soup.id, parent_line_id=starters_line.id)
    menu_line_service.insert_line(db_session, tenant_id, menu.id, 'item', paella.id, parent_line_id=mains_line.id)

    catalog_service.publish_menu(db_session, tenant_id, menu.id)
    publication_service.activate(db_session, tenant_id, location.id, menu.id)
