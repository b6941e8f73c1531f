"""
Visibility propagation for menu lines.

Two cascades with different scopes live here and are kept as separate
operations:

- toggle_line: acting on one line of one menu. An item line flips the item's
  global visibility and fans out to every line of the item in every menu; a
  section line only flips itself and its children in that menu, and
  re-enabling leaves (or puts) children whose item is hidden disabled.
- set_section_active: acting on the section entity. Every line of the section
  in every menu, and all of their children, take the new value
  unconditionally.

Locks are taken catalog entity first (item or section row), then lines, so
concurrent cascades over the same item serialize.

`Item.is_visible` is the source of truth; `MenuLine.is_enabled` on item lines
is kept in step with it inside the same transaction.
"""
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from app.exceptions import LineNotFoundError
from app.models import Item, MenuLine, Section
from app.services.catalog_service import get_item, get_menu, get_section
from app.services.transaction import atomic

logger = logging.getLogger(__name__)


def apply_item_visibility(session: Session, tenant_id: int, item: Item, is_visible: bool) -> int:
    """
    Set the item's visibility and every line referencing it, without committing.
    The caller owns the transaction and must hold the item row lock.
    """
    item.is_visible = is_visible
    affected = session.query(MenuLine).filter(
        MenuLine.tenant_id == tenant_id,
        MenuLine.item_id == item.id
    ).update({MenuLine.is_enabled: is_visible}, synchronize_session='fetch')
    logger.info(f"Item {item.id} visibility -> {is_visible}: {affected} line(s) updated across menus")
    return affected


def apply_section_active(session: Session, tenant_id: int, section: Section, is_active: bool) -> Dict[str, int]:
    """
    Set the section's active flag, every section line referencing it and all
    of their children, without committing.
    """
    section.is_active = is_active
    line_ids = [
        line_id for (line_id,) in session.query(MenuLine.id).filter(
            MenuLine.tenant_id == tenant_id,
            MenuLine.section_id == section.id
        )
    ]
    children = 0
    if line_ids:
        session.query(MenuLine).filter(
            MenuLine.id.in_(line_ids)
        ).update({MenuLine.is_enabled: is_active}, synchronize_session='fetch')
        children = session.query(MenuLine).filter(
            MenuLine.parent_line_id.in_(line_ids)
        ).update({MenuLine.is_enabled: is_active}, synchronize_session='fetch')

    logger.info(
        f"Section {section.id} active -> {is_active}: "
        f"{len(line_ids)} section line(s), {children} child line(s)"
    )
    return {'section_lines': len(line_ids), 'child_lines': children}


def set_item_visible(session: Session, tenant_id: int, item_id: int, is_visible: bool) -> Dict[str, Any]:
    """Set an item's global visibility and propagate it to all of its lines."""
    with atomic(session, tenant_id):
        item = get_item(session, tenant_id, item_id, lock=True)
        affected = apply_item_visibility(session, tenant_id, item, bool(is_visible))
    return {'item': item, 'is_visible': item.is_visible, 'affected': affected}


def set_section_active(session: Session, tenant_id: int, section_id: int, is_active: bool) -> Dict[str, Any]:
    """
    Activate or deactivate a section everywhere it is placed.

    Idempotent: applying the same value twice leaves the same state.
    """
    with atomic(session, tenant_id):
        section = get_section(session, tenant_id, section_id, lock=True)
        counts = apply_section_active(session, tenant_id, section, bool(is_active))
    return {'section': section, 'is_active': section.is_active, **counts}


def _find_line(session: Session, tenant_id: int, menu_id: int, line_id: int, lock: bool = False) -> MenuLine:
    query = session.query(MenuLine).filter(
        MenuLine.id == line_id,
        MenuLine.menu_id == menu_id,
        MenuLine.tenant_id == tenant_id
    )
    if lock:
        query = query.with_for_update().populate_existing()
    line = query.first()
    if not line:
        raise LineNotFoundError('Line not found in this menu', line_ids=[line_id])
    return line


def toggle_line(session: Session, tenant_id: int, menu_id: int, line_id: int) -> Dict[str, Any]:
    """
    Flip a line's enabled state and run the matching cascade.

    Allowed on published menus too; this is not a structural change.

    Returns:
        dict with the line, its new is_enabled, the number of other lines
        updated (`affected`), the number of children left disabled because
        their item is hidden (`skipped`) and the cascade `scope`
        ('global' for item lines, 'menu' for section lines).
    """
    with atomic(session, tenant_id):
        menu = get_menu(session, tenant_id, menu_id)
        target = _find_line(session, tenant_id, menu.id, line_id)

        # Lock order: catalog entity first, then lines
        if target.is_item:
            item = get_item(session, tenant_id, target.item_id, lock=True)
        else:
            get_section(session, tenant_id, target.section_id, lock=True)
        line = _find_line(session, tenant_id, menu.id, line_id, lock=True)

        if line.is_item:
            new_state = not item.is_visible
            updated = apply_item_visibility(session, tenant_id, item, new_state)
            session.refresh(line)
            result = {
                'line': line,
                'is_enabled': new_state,
                'affected': max(updated - 1, 0),
                'skipped': 0,
                'scope': 'global',
            }
        else:
            result = _toggle_section_line(session, line)

    return result


def _toggle_section_line(session: Session, line: MenuLine) -> Dict[str, Any]:
    new_state = not line.is_enabled
    line.is_enabled = new_state
    children = session.query(MenuLine).filter(
        MenuLine.parent_line_id == line.id
    ).with_for_update().all()

    affected = skipped = 0
    for child in children:
        if not new_state:
            if child.is_enabled:
                child.is_enabled = False
                affected += 1
            continue

        visible = child.item.is_visible if child.item is not None else False
        if not visible:
            skipped += 1
            if child.is_enabled:
                child.is_enabled = False
                affected += 1
            continue
        if not child.is_enabled:
            child.is_enabled = True
            affected += 1

    if skipped:
        logger.info(f"Section line {line.id} enabled: {skipped} child line(s) skipped (item hidden)")
    logger.info(f"Section line {line.id} -> {new_state}: {affected} child line(s) updated in menu {line.menu_id}")
    return {
        'line': line,
        'is_enabled': new_state,
        'affected': affected,
        'skipped': skipped,
        'scope': 'menu',
    }
