"""
Menu section service - which reusable sections a menu uses, and in what order.

Attaching, detaching and reordering sections are structural changes: draft
menus only, under the menu row lock. Inserting a section line attaches its
section implicitly; detaching a section removes its section lines (and their
item lines) from the menu.
"""
import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session, joinedload

from app.exceptions import BusinessLogicError, ConflictError, NotFoundError
from app.models import Menu, MenuLine, MenuSection, Section
from app.services.catalog_service import get_menu, get_section, parse_int, require_draft
from app.services.transaction import atomic

logger = logging.getLogger(__name__)


def _roster(session: Session, menu_id: int) -> List[MenuSection]:
    return session.query(MenuSection).filter(
        MenuSection.menu_id == menu_id
    ).order_by(MenuSection.display_order, MenuSection.id).all()


def _renumber(rows) -> None:
    for index, row in enumerate(rows):
        if row.display_order != index:
            row.display_order = index


def list_menu_sections(session: Session, tenant_id: int, menu_id: int) -> List[MenuSection]:
    menu = get_menu(session, tenant_id, menu_id)
    return session.query(MenuSection).options(
        joinedload(MenuSection.section)
    ).filter(
        MenuSection.menu_id == menu.id,
        MenuSection.tenant_id == tenant_id
    ).order_by(MenuSection.display_order, MenuSection.id).all()


def ensure_attached(session: Session, tenant_id: int, menu: Menu, section: Section) -> MenuSection:
    """Attach the section at the end of the roster if it is not attached yet. Does not commit."""
    row = session.query(MenuSection).filter(
        MenuSection.menu_id == menu.id,
        MenuSection.section_id == section.id
    ).first()
    if row:
        return row
    roster = _roster(session, menu.id)
    row = MenuSection(
        tenant_id=tenant_id,
        menu_id=menu.id,
        section_id=section.id,
        display_order=max((r.display_order for r in roster), default=-1) + 1
    )
    session.add(row)
    session.flush()
    return row


def attach_section(session: Session, tenant_id: int, menu_id: int, section_id, position=None) -> MenuSection:
    """
    Attach a section to a draft menu.

    Appended at the end of the roster, or inserted at `position` with later
    sections shifted down. Attaching twice is a ConflictError.
    """
    section_id = parse_int(section_id, 'section_id')
    if position is not None:
        position = parse_int(position, 'position')
        if position < 0:
            raise BusinessLogicError('Position must be greater than or equal to 0')

    with atomic(session, tenant_id):
        menu = get_menu(session, tenant_id, menu_id, lock=True)
        require_draft(menu)
        section = get_section(session, tenant_id, section_id)

        roster = _roster(session, menu.id)
        if any(r.section_id == section.id for r in roster):
            raise ConflictError('Section is already attached to this menu')

        row = MenuSection(tenant_id=tenant_id, menu_id=menu.id, section_id=section.id)
        if position is None:
            row.display_order = max((r.display_order for r in roster), default=-1) + 1
        else:
            roster.insert(min(position, len(roster)), row)
            _renumber(roster)
        session.add(row)
        session.flush()

    logger.info(f"Section {section_id} attached to menu {menu_id} at order {row.display_order}")
    return row


def detach_section(session: Session, tenant_id: int, menu_id: int, section_id) -> Dict[str, Any]:
    """
    Detach a section from a draft menu.

    The menu's section lines for it are removed together with their item
    lines; remaining top-level lines and the roster are renumbered.
    """
    section_id = parse_int(section_id, 'section_id')

    with atomic(session, tenant_id):
        menu = get_menu(session, tenant_id, menu_id, lock=True)
        require_draft(menu)
        row = session.query(MenuSection).filter(
            MenuSection.menu_id == menu.id,
            MenuSection.section_id == section_id,
            MenuSection.tenant_id == tenant_id
        ).first()
        if not row:
            raise NotFoundError('Section is not attached to this menu')

        line_ids = [
            line_id for (line_id,) in session.query(MenuLine.id).filter(
                MenuLine.menu_id == menu.id,
                MenuLine.section_id == section_id
            )
        ]
        removed = 0
        if line_ids:
            removed += session.query(MenuLine).filter(
                MenuLine.parent_line_id.in_(line_ids)
            ).delete(synchronize_session='fetch')
            removed += session.query(MenuLine).filter(
                MenuLine.id.in_(line_ids)
            ).delete(synchronize_session='fetch')
            top_level = session.query(MenuLine).filter(
                MenuLine.menu_id == menu.id,
                MenuLine.parent_line_id.is_(None)
            ).order_by(MenuLine.display_order, MenuLine.id).all()
            _renumber(top_level)

        session.delete(row)
        session.flush()
        _renumber(_roster(session, menu.id))

    logger.info(f"Section {section_id} detached from menu {menu_id} ({removed} line(s) removed)")
    return {'section_id': section_id, 'removed_lines': removed}


def reorder_sections(session: Session, tenant_id: int, menu_id: int, section_ids) -> List[MenuSection]:
    """
    Reorder a draft menu's roster: listed sections first in the given order,
    unlisted ones after them in their previous order.
    """
    if not isinstance(section_ids, list) or not section_ids:
        raise BusinessLogicError('section_ids array is required')
    wanted = [parse_int(s, 'section_id') for s in section_ids]
    if len(set(wanted)) != len(wanted):
        raise BusinessLogicError('section_ids contains duplicates')

    with atomic(session, tenant_id):
        menu = get_menu(session, tenant_id, menu_id, lock=True)
        require_draft(menu)
        roster = _roster(session, menu.id)
        by_section = {r.section_id: r for r in roster}

        missing = [s for s in wanted if s not in by_section]
        if missing:
            raise NotFoundError(
                'Some sections are not attached to this menu',
                payload={'section_ids': missing}
            )

        listed = [by_section[s] for s in wanted]
        rest = [r for r in roster if r.section_id not in set(wanted)]
        _renumber(listed + rest)

    logger.info(f"Reordered {len(wanted)} section(s) in menu {menu_id}")
    return _roster(session, menu_id)
