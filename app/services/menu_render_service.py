"""
Menu render service - read-only assembly of what a location currently serves.

No writes happen here. The public entry point caches the rendered result per
(tenant, location, locale); every committed mutation drops the tenant's
cached renders (see app.services.transaction.atomic).
"""
import logging
from typing import Any, Dict, List, Optional

from flask import current_app, has_app_context
from sqlalchemy.orm import Session, selectinload

from app.exceptions import NotFoundError
from app.models import Item, Location, Menu, MenuLine, MenuPublication, MenuStatus, Section
from app.services.cache_service import MENU_RENDER_MODULE, get_cache
from app.services.catalog_service import get_location, get_tenant, get_tenant_by_slug
from app.utils.i18n import locale_chain, normalize_locale, resolve_field

logger = logging.getLogger(__name__)


def _format_price(price) -> Optional[str]:
    if price is None:
        return None
    return "%.2f" % price


def _item_node(line: MenuLine, chain: List[str]) -> Dict[str, Any]:
    item = line.item
    return {
        'kind': 'item',
        'line_id': line.id,
        'item_id': item.id,
        'display_order': line.display_order,
        'name': resolve_field(item.translations, 'name', chain),
        'description': resolve_field(item.translations, 'description', chain),
        'price': _format_price(item.price),
        'currency': item.currency,
        'allergens': sorted(a.code for a in item.allergens),
        'dietary_flags': sorted(f.code for f in item.dietary_flags),
        'ingredients': sorted(i.name for i in item.ingredients),
    }


def _section_node(line: MenuLine, children: List[MenuLine], chain: List[str]) -> Dict[str, Any]:
    section = line.section
    return {
        'kind': 'section',
        'line_id': line.id,
        'section_id': section.id,
        'display_order': line.display_order,
        'title': resolve_field(section.translations, 'title', chain),
        'description': resolve_field(section.translations, 'description', chain),
        'items': [_item_node(child, chain) for child in children],
    }


def _is_shown(line: MenuLine) -> bool:
    if not line.is_enabled:
        return False
    if line.is_section:
        return line.section is not None and line.section.is_active
    return line.item is not None and line.item.is_visible


def _menu_nodes(session: Session, menu: Menu, chain: List[str], include_empty: bool) -> List[Dict[str, Any]]:
    lines = session.query(MenuLine).options(
        selectinload(MenuLine.section).selectinload(Section.translations),
        selectinload(MenuLine.item).selectinload(Item.translations),
        selectinload(MenuLine.item).selectinload(Item.allergens),
        selectinload(MenuLine.item).selectinload(Item.dietary_flags),
        selectinload(MenuLine.item).selectinload(Item.ingredients),
    ).filter(
        MenuLine.menu_id == menu.id,
        MenuLine.is_enabled.is_(True)
    ).order_by(MenuLine.display_order, MenuLine.id).all()

    children = {}
    top_level = []
    for line in lines:
        if not _is_shown(line):
            continue
        if line.parent_line_id is None:
            top_level.append(line)
        else:
            children.setdefault(line.parent_line_id, []).append(line)

    menu_name = resolve_field(menu.translations, 'name', chain)
    nodes = []
    for line in top_level:
        if line.is_section:
            node = _section_node(line, children.get(line.id, []), chain)
            if not node['items'] and not include_empty:
                continue
        else:
            node = _item_node(line, chain)
        node.update({'menu_id': menu.id, 'menu_code': menu.code, 'menu_name': menu_name})
        nodes.append(node)
    return nodes


def render_menu(
    session: Session,
    tenant_id: int,
    location_id: int,
    locale: Optional[str] = None,
    include_empty: bool = True
) -> Dict[str, Any]:
    """
    Assemble the menus currently live at a location.

    Current publications of published menus are taken in activation order;
    each contributes its enabled top-level lines ordered by display_order.
    Section nodes carry their enabled, visible items; an empty section is
    kept with an empty item list unless include_empty is False. Text is
    resolved per field: requested locale, then tenant default, then any.

    Returns:
        {'location': {...}, 'locale': str, 'sections': [node, ...]}
    """
    tenant = get_tenant(session, tenant_id)
    location = get_location(session, tenant_id, location_id)
    chain = locale_chain(locale, tenant.default_locale)

    publications = session.query(MenuPublication).join(
        Menu, Menu.id == MenuPublication.menu_id
    ).filter(
        MenuPublication.tenant_id == tenant_id,
        MenuPublication.location_id == location.id,
        MenuPublication.is_current.is_(True),
        Menu.status == MenuStatus.PUBLISHED
    ).order_by(MenuPublication.goes_live_at, MenuPublication.id).all()

    nodes = []
    for publication in publications:
        nodes.extend(_menu_nodes(session, publication.menu, chain, include_empty))

    return {
        'location': {'id': location.id, 'slug': location.slug, 'name': location.name},
        'locale': chain[0] if chain else None,
        'sections': nodes,
    }


def render_location_menu(
    session: Session,
    tenant_slug: str,
    location_slug: str,
    locale: Optional[str] = None
) -> Dict[str, Any]:
    """Public read: resolve tenant and active location by slug, render with caching."""
    tenant = get_tenant_by_slug(session, tenant_slug)
    location = session.query(Location).filter(
        Location.tenant_id == tenant.id,
        Location.slug == location_slug,
        Location.is_active.is_(True)
    ).first()
    if not location:
        raise NotFoundError('Location not found')

    resolved = normalize_locale(locale) or normalize_locale(tenant.default_locale)

    def loader():
        return render_menu(session, tenant.id, location.id, resolved)

    try:
        cache = get_cache()
    except RuntimeError:
        return loader()

    ttl = current_app.config.get('CACHE_MENU_TTL', 300) if has_app_context() else 300
    return cache.memoize(tenant.id, MENU_RENDER_MODULE, f"{location.id}:{resolved}", loader, ttl)
