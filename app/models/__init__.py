"""Models package - exports all SQLAlchemy models."""
# Tenancy
from app.models.tenant import Tenant
from app.models.location import Location

# Catalog
from app.models.section import Section, SectionI18n
from app.models.item import Item, ItemI18n, item_allergen, item_dietary_flag, item_ingredient
from app.models.reference_data import Allergen, DietaryFlag, Ingredient

# Menu composition
from app.models.menu import Menu, MenuI18n, MenuStatus
from app.models.menu_line import MenuLine, LineType
from app.models.menu_section import MenuSection
from app.models.menu_publication import MenuPublication

# Audit
from app.models.audit_log import AuditLog, AuditAction

__all__ = [
    'Tenant', 'Location',
    'Section', 'SectionI18n',
    'Item', 'ItemI18n', 'item_allergen', 'item_dietary_flag', 'item_ingredient',
    'Allergen', 'DietaryFlag', 'Ingredient',
    'Menu', 'MenuI18n', 'MenuStatus',
    'MenuLine', 'LineType', 'MenuSection',
    'MenuPublication',
    'AuditLog', 'AuditAction',
]
