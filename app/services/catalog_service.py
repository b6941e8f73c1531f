"""
Catalog service - reusable sections, items, locations and menus (multi-tenant).

Every lookup is filtered by tenant_id; a row owned by another tenant is
reported exactly like a missing one.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import BusinessLogicError, ConflictError, MenuNotEditableError, NotFoundError
from app.models import (
    Allergen, DietaryFlag, Ingredient, Item, ItemI18n, Location, Menu, MenuI18n,
    MenuLine, MenuPublication, MenuSection, MenuStatus, Section, SectionI18n, Tenant
)
from app.services.transaction import atomic
from app.utils.i18n import normalize_locale

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_tenant(session: Session, tenant_id: int) -> Tenant:
    tenant = session.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise NotFoundError('Tenant not found')
    return tenant


def get_tenant_by_slug(session: Session, slug: str) -> Tenant:
    tenant = session.query(Tenant).filter(Tenant.slug == slug, Tenant.active.is_(True)).first()
    if not tenant:
        raise NotFoundError('Restaurant not found')
    return tenant


def get_menu(session: Session, tenant_id: int, menu_id: int, lock: bool = False) -> Menu:
    """Fetch a tenant's menu; lock=True takes a row lock for structural changes."""
    query = session.query(Menu).filter(Menu.id == menu_id, Menu.tenant_id == tenant_id)
    if lock:
        query = query.with_for_update()
    menu = query.first()
    if not menu:
        raise NotFoundError('Menu not found')
    return menu


def get_section(session: Session, tenant_id: int, section_id: int, lock: bool = False) -> Section:
    query = session.query(Section).filter(Section.id == section_id, Section.tenant_id == tenant_id)
    if lock:
        query = query.with_for_update()
    section = query.first()
    if not section:
        raise NotFoundError('Section not found')
    return section


def get_item(session: Session, tenant_id: int, item_id: int, lock: bool = False) -> Item:
    query = session.query(Item).filter(Item.id == item_id, Item.tenant_id == tenant_id)
    if lock:
        query = query.with_for_update()
    item = query.first()
    if not item:
        raise NotFoundError('Item not found')
    return item


def get_location(session: Session, tenant_id: int, location_id: int, lock: bool = False) -> Location:
    query = session.query(Location).filter(
        Location.id == location_id,
        Location.tenant_id == tenant_id
    )
    if lock:
        query = query.with_for_update()
    location = query.first()
    if not location:
        raise NotFoundError('Location not found')
    return location


def list_sections(session: Session, tenant_id: int) -> List[Section]:
    return session.query(Section).filter(Section.tenant_id == tenant_id).order_by(Section.id).all()


def list_items(session: Session, tenant_id: int) -> List[Item]:
    return session.query(Item).filter(Item.tenant_id == tenant_id).order_by(Item.id).all()


def list_menus(session: Session, tenant_id: int) -> List[Menu]:
    return session.query(Menu).filter(Menu.tenant_id == tenant_id).order_by(Menu.code).all()


def list_locations(session: Session, tenant_id: int) -> List[Location]:
    return session.query(Location).filter(Location.tenant_id == tenant_id).order_by(Location.name).all()


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------

def parse_int(value, field: str) -> int:
    """Coerce a request value to int, reporting anything else as a validation error."""
    if isinstance(value, bool):
        raise BusinessLogicError(f"'{field}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError(f"'{field}' must be an integer")


def require_draft(menu: Menu) -> None:
    """Structural changes are only allowed while the menu is a draft."""
    if not menu.is_draft:
        raise MenuNotEditableError(menu.code)


def _clean_translations(translations: Optional[Iterable[Dict[str, Any]]], text_field: str) -> List[Dict[str, Any]]:
    """Validate translation payloads: a locale and a non-empty text field each, no duplicate locale."""
    if not translations:
        raise BusinessLogicError('At least one translation is required')

    cleaned = []
    seen = set()
    for raw in translations:
        if not isinstance(raw, dict):
            raise BusinessLogicError('Each translation must be an object')
        locale = normalize_locale(raw.get('locale'))
        text = (raw.get(text_field) or '').strip()
        if not locale:
            raise BusinessLogicError('Translation locale is required')
        if not text:
            raise BusinessLogicError(f'Translation {text_field} is required ({locale})')
        if locale in seen:
            raise BusinessLogicError(f'Duplicate translation for locale {locale}')
        seen.add(locale)
        cleaned.append({
            'locale': locale,
            text_field: text,
            'description': (raw.get('description') or '').strip() or None,
        })
    return cleaned


def _parse_price(value) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    try:
        price = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        raise BusinessLogicError('Price must be a valid number')
    if price < 0:
        raise BusinessLogicError('Price must be greater than or equal to 0')
    return price


def _flush_unique(session: Session, message: str) -> None:
    """Flush pending inserts, reporting a unique-constraint violation as a conflict."""
    try:
        session.flush()
    except IntegrityError:
        raise ConflictError(message)


def _load_refs(session: Session, model, tenant_id: int, ids: Iterable[int], label: str) -> list:
    try:
        ids = list(dict.fromkeys(int(i) for i in ids or ()))
    except (TypeError, ValueError):
        raise BusinessLogicError(f'{label.capitalize()} must be a list of ids')
    if not ids:
        return []
    rows = session.query(model).filter(model.id.in_(ids), model.tenant_id == tenant_id).all()
    if len(rows) != len(ids):
        raise NotFoundError(f'One or more {label} not found')
    return rows


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def create_section(session: Session, tenant_id: int, translations, is_active: bool = True) -> Section:
    cleaned = _clean_translations(translations, 'title')
    with atomic(session, tenant_id):
        get_tenant(session, tenant_id)
        section = Section(tenant_id=tenant_id, is_active=bool(is_active))
        section.translations = [SectionI18n(**t) for t in cleaned]
        session.add(section)
    return section


def update_section(
    session: Session,
    tenant_id: int,
    section_id: int,
    translations=None,
    is_active: Optional[bool] = None
) -> Section:
    """
    Update a section. An is_active change runs the section-entity cascade
    (every section line referencing it, across all menus, and their children)
    in the same transaction.
    """
    from app.services.visibility_service import apply_section_active

    cleaned = _clean_translations(translations, 'title') if translations is not None else None
    with atomic(session, tenant_id):
        section = get_section(session, tenant_id, section_id, lock=True)
        if cleaned is not None:
            # flush the deletes first: (section_id, locale) is unique
            section.translations.clear()
            session.flush()
            section.translations = [SectionI18n(**t) for t in cleaned]
        if is_active is not None and bool(is_active) != section.is_active:
            apply_section_active(session, tenant_id, section, bool(is_active))
    return section


def delete_section(session: Session, tenant_id: int, section_id: int) -> None:
    """Delete a section together with every line placing it (and their children) in any menu."""
    with atomic(session, tenant_id):
        section = get_section(session, tenant_id, section_id, lock=True)
        line_ids = [
            line_id for (line_id,) in session.query(MenuLine.id).filter(
                MenuLine.tenant_id == tenant_id,
                MenuLine.section_id == section.id
            )
        ]
        if line_ids:
            session.query(MenuLine).filter(
                MenuLine.parent_line_id.in_(line_ids)
            ).delete(synchronize_session='fetch')
            session.query(MenuLine).filter(
                MenuLine.id.in_(line_ids)
            ).delete(synchronize_session='fetch')
        session.query(MenuSection).filter(
            MenuSection.section_id == section.id
        ).delete(synchronize_session='fetch')
        session.delete(section)
    logger.info(f"Section {section_id} deleted with {len(line_ids)} section line(s)")


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

def create_item(
    session: Session,
    tenant_id: int,
    translations,
    price=None,
    currency: Optional[str] = None,
    is_visible: bool = True,
    allergen_ids: Iterable[int] = (),
    dietary_flag_ids: Iterable[int] = (),
    ingredient_ids: Iterable[int] = ()
) -> Item:
    cleaned = _clean_translations(translations, 'name')
    parsed_price = _parse_price(price)
    with atomic(session, tenant_id):
        tenant = get_tenant(session, tenant_id)
        item = Item(
            tenant_id=tenant_id,
            is_visible=bool(is_visible),
            price=parsed_price,
            currency=(currency or tenant.default_currency).upper()
        )
        item.translations = [ItemI18n(**t) for t in cleaned]
        item.allergens = _load_refs(session, Allergen, tenant_id, allergen_ids, 'allergens')
        item.dietary_flags = _load_refs(session, DietaryFlag, tenant_id, dietary_flag_ids, 'dietary flags')
        item.ingredients = _load_refs(session, Ingredient, tenant_id, ingredient_ids, 'ingredients')
        session.add(item)
    return item


def update_item(session: Session, tenant_id: int, item_id: int, **changes) -> Item:
    """
    Update an item. Accepted keys: translations, price, currency, is_visible,
    allergen_ids, dietary_flag_ids, ingredient_ids. An is_visible change is
    propagated to every menu line referencing the item, in every menu.
    """
    from app.services.visibility_service import apply_item_visibility

    cleaned = _clean_translations(changes['translations'], 'name') if changes.get('translations') is not None else None
    with atomic(session, tenant_id):
        item = get_item(session, tenant_id, item_id, lock=True)
        if cleaned is not None:
            item.translations.clear()
            session.flush()
            item.translations = [ItemI18n(**t) for t in cleaned]
        if 'price' in changes:
            item.price = _parse_price(changes['price'])
        if changes.get('currency'):
            item.currency = changes['currency'].upper()
        if changes.get('allergen_ids') is not None:
            item.allergens = _load_refs(session, Allergen, tenant_id, changes['allergen_ids'], 'allergens')
        if changes.get('dietary_flag_ids') is not None:
            item.dietary_flags = _load_refs(session, DietaryFlag, tenant_id, changes['dietary_flag_ids'], 'dietary flags')
        if changes.get('ingredient_ids') is not None:
            item.ingredients = _load_refs(session, Ingredient, tenant_id, changes['ingredient_ids'], 'ingredients')
        is_visible = changes.get('is_visible')
        if is_visible is not None and bool(is_visible) != item.is_visible:
            apply_item_visibility(session, tenant_id, item, bool(is_visible))
    return item


def delete_item(session: Session, tenant_id: int, item_id: int) -> None:
    """Delete an item and every line placing it in any menu."""
    with atomic(session, tenant_id):
        item = get_item(session, tenant_id, item_id, lock=True)
        removed = session.query(MenuLine).filter(
            MenuLine.tenant_id == tenant_id,
            MenuLine.item_id == item.id
        ).delete(synchronize_session='fetch')
        session.delete(item)
    logger.info(f"Item {item_id} deleted with {removed} menu line(s)")


# ---------------------------------------------------------------------------
# Reference data & locations
# ---------------------------------------------------------------------------

def _create_coded(session: Session, model, tenant_id: int, code: str, name: str):
    code = (code or '').strip().upper()
    name = (name or '').strip()
    if not code or not name:
        raise BusinessLogicError('Code and name are required')
    with atomic(session, tenant_id):
        row = model(tenant_id=tenant_id, code=code, name=name)
        session.add(row)
        _flush_unique(session, f"Code '{code}' already exists")
    return row


def create_allergen(session: Session, tenant_id: int, code: str, name: str) -> Allergen:
    return _create_coded(session, Allergen, tenant_id, code, name)


def create_dietary_flag(session: Session, tenant_id: int, code: str, name: str) -> DietaryFlag:
    return _create_coded(session, DietaryFlag, tenant_id, code, name)


def create_ingredient(session: Session, tenant_id: int, name: str) -> Ingredient:
    name = (name or '').strip()
    if not name:
        raise BusinessLogicError('Ingredient name is required')
    with atomic(session, tenant_id):
        ingredient = Ingredient(tenant_id=tenant_id, name=name)
        session.add(ingredient)
    return ingredient


def create_location(session: Session, tenant_id: int, name: str, slug: str, city: Optional[str] = None) -> Location:
    name = (name or '').strip()
    slug = (slug or '').strip().lower()
    if not name or not slug:
        raise BusinessLogicError('Location name and slug are required')
    with atomic(session, tenant_id):
        get_tenant(session, tenant_id)
        location = Location(tenant_id=tenant_id, name=name, slug=slug, city=city, is_active=True)
        session.add(location)
        _flush_unique(session, f"Location slug '{slug}' already exists")
    return location


# ---------------------------------------------------------------------------
# Menus
# ---------------------------------------------------------------------------

def create_menu(session: Session, tenant_id: int, code: str, translations, currency: Optional[str] = None) -> Menu:
    """Create a draft menu. Codes are unique per tenant."""
    code = (code or '').strip()
    if not code:
        raise BusinessLogicError('Menu code is required')
    cleaned = _clean_translations(translations, 'name')
    with atomic(session, tenant_id):
        tenant = get_tenant(session, tenant_id)
        menu = Menu(
            tenant_id=tenant_id,
            code=code,
            status=MenuStatus.DRAFT,
            currency=(currency or tenant.default_currency).upper()
        )
        menu.translations = [MenuI18n(**t) for t in cleaned]
        session.add(menu)
        _flush_unique(session, f"Menu code '{code}' already exists")
    return menu


def publish_menu(session: Session, tenant_id: int, menu_id: int) -> Menu:
    """draft -> published. Publishing twice is a no-op; there is no way back to draft."""
    with atomic(session, tenant_id):
        menu = get_menu(session, tenant_id, menu_id, lock=True)
        if menu.is_draft:
            menu.status = MenuStatus.PUBLISHED
            menu.published_at = datetime.now(timezone.utc)
            logger.info(f"Menu {menu.code} ({menu.id}) published")
    return menu


def set_menu_status(session: Session, tenant_id: int, menu_id: int, status: str) -> Menu:
    """Apply a requested status. Only draft -> published is a valid transition."""
    try:
        target = MenuStatus(status)
    except ValueError:
        raise BusinessLogicError(f"Invalid menu status '{status}'")
    if target == MenuStatus.PUBLISHED:
        return publish_menu(session, tenant_id, menu_id)

    menu = get_menu(session, tenant_id, menu_id)
    if menu.is_published:
        raise BusinessLogicError('A published menu cannot return to draft. Create a new draft menu instead.')
    return menu


def delete_menu(session: Session, tenant_id: int, menu_id: int) -> None:
    """Delete a menu, its line tree and its publications."""
    with atomic(session, tenant_id):
        menu = get_menu(session, tenant_id, menu_id, lock=True)
        session.query(MenuPublication).filter(
            MenuPublication.menu_id == menu.id
        ).delete(synchronize_session='fetch')
        session.query(MenuSection).filter(
            MenuSection.menu_id == menu.id
        ).delete(synchronize_session='fetch')
        # children first, then top-level lines
        session.query(MenuLine).filter(
            MenuLine.menu_id == menu.id,
            MenuLine.parent_line_id.isnot(None)
        ).delete(synchronize_session='fetch')
        session.query(MenuLine).filter(
            MenuLine.menu_id == menu.id
        ).delete(synchronize_session='fetch')
        session.delete(menu)
    logger.info(f"Menu {menu_id} deleted")
