"""
Menu line service - structural operations on a menu's two-level line tree.

Insert, reorder, move and delete are structural changes: they require the
menu to be a draft and run as one transaction holding a row lock on the menu,
so concurrent edits of the same menu serialize. Sibling display orders are
kept contiguous (0..n-1) after every operation.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.exceptions import BusinessLogicError, InvalidParentError, LineNotFoundError
from app.models import LineType, MenuLine
from app.services.catalog_service import get_item, get_menu, get_section, parse_int, require_draft
from app.services.menu_section_service import ensure_attached
from app.services.transaction import atomic

logger = logging.getLogger(__name__)

DELETE_POLICIES = ('cascade', 'reparent', 'reject')


def _coerce_line_type(line_type) -> LineType:
    if isinstance(line_type, LineType):
        return line_type
    try:
        return LineType(str(line_type).lower())
    except ValueError:
        raise BusinessLogicError('Invalid lineType, expected "section" or "item"')


def _siblings(session: Session, menu_id: int, parent_line_id: Optional[int]) -> List[MenuLine]:
    query = session.query(MenuLine).filter(MenuLine.menu_id == menu_id)
    if parent_line_id is None:
        query = query.filter(MenuLine.parent_line_id.is_(None))
    else:
        query = query.filter(MenuLine.parent_line_id == parent_line_id)
    return query.order_by(MenuLine.display_order, MenuLine.id).all()


def _compact(lines: List[MenuLine]) -> None:
    """Renumber an ordered sibling list to 0..n-1."""
    for index, line in enumerate(lines):
        if line.display_order != index:
            line.display_order = index


def _get_line(session: Session, tenant_id: int, line_id: int, menu_id: Optional[int] = None) -> MenuLine:
    query = session.query(MenuLine).filter(MenuLine.id == line_id, MenuLine.tenant_id == tenant_id)
    if menu_id is not None:
        query = query.filter(MenuLine.menu_id == menu_id)
    line = query.with_for_update().first()
    if not line:
        raise LineNotFoundError('Line not found', line_ids=[line_id])
    return line


def _get_parent_section_line(session: Session, tenant_id: int, menu_id: int, parent_line_id) -> MenuLine:
    parent = session.query(MenuLine).filter(
        MenuLine.id == parent_line_id,
        MenuLine.tenant_id == tenant_id,
        MenuLine.menu_id == menu_id,
        MenuLine.line_type == LineType.SECTION
    ).first()
    if not parent:
        raise InvalidParentError()
    return parent


def get_menu_tree(session: Session, tenant_id: int, menu_id: int):
    """
    Admin view of a menu: (menu, top-level lines). Disabled lines included;
    children are reachable through `line.child_lines`, ordered.
    """
    menu = get_menu(session, tenant_id, menu_id)
    lines = session.query(MenuLine).options(
        joinedload(MenuLine.section),
        joinedload(MenuLine.item),
    ).filter(
        MenuLine.menu_id == menu.id,
        MenuLine.tenant_id == tenant_id,
        MenuLine.parent_line_id.is_(None)
    ).order_by(MenuLine.display_order, MenuLine.id).all()
    return menu, lines


def insert_line(
    session: Session,
    tenant_id: int,
    menu_id: int,
    line_type,
    ref_id: int,
    parent_line_id: Optional[int] = None,
    position: Optional[int] = None
) -> MenuLine:
    """
    Place a section or an item into a draft menu.

    Without `position` the line is appended after the highest sibling order;
    with it, the line takes that index among its siblings and later siblings
    shift down. New lines start enabled. A section line attaches its section
    to the menu if needed.
    """
    line_type = _coerce_line_type(line_type)
    if ref_id is None:
        raise BusinessLogicError(f'{line_type.value}Id is required for {line_type.value} lines')
    ref_id = parse_int(ref_id, 'ref_id')
    if parent_line_id is not None:
        parent_line_id = parse_int(parent_line_id, 'parent_line_id')
    if position is not None:
        position = parse_int(position, 'position')
    if position is not None and position < 0:
        raise BusinessLogicError('Position must be greater than or equal to 0')

    with atomic(session, tenant_id):
        menu = get_menu(session, tenant_id, menu_id, lock=True)
        require_draft(menu)

        if line_type == LineType.SECTION:
            section = get_section(session, tenant_id, ref_id)
            if parent_line_id is not None:
                raise InvalidParentError('Section lines cannot be nested under another line')
            ensure_attached(session, tenant_id, menu, section)
        else:
            get_item(session, tenant_id, ref_id)
            if parent_line_id is not None:
                _get_parent_section_line(session, tenant_id, menu.id, parent_line_id)

        siblings = _siblings(session, menu.id, parent_line_id)
        line = MenuLine(
            tenant_id=tenant_id,
            menu_id=menu.id,
            line_type=line_type,
            section_id=ref_id if line_type == LineType.SECTION else None,
            item_id=ref_id if line_type == LineType.ITEM else None,
            parent_line_id=parent_line_id,
            is_enabled=True
        )

        if position is None:
            line.display_order = (max((s.display_order for s in siblings), default=-1)) + 1
        else:
            siblings.insert(min(position, len(siblings)), line)
            _compact(siblings)

        session.add(line)
        session.flush()

    logger.info(f"Inserted {line_type.value} line {line.id} into menu {menu_id} at order {line.display_order}")
    return line


def reorder_lines(session: Session, tenant_id: int, menu_id: int, ordered: List[Dict[str, Any]]) -> List[MenuLine]:
    """
    Apply a new ordering (and optionally new parents) to lines of a draft menu.

    `ordered` is a list of {'line_id', 'display_order'?, 'parent_line_id'?}.
    An absent 'parent_line_id' keeps the current parent; an explicit None moves
    the line to the top level. Each affected sibling group is renumbered
    0..k-1: listed lines first, in supplied order (a supplied display_order is
    used as a stable sort key), then unlisted siblings in their previous order.
    All updates are applied in one transaction.
    """
    if not ordered:
        raise BusinessLogicError('Lines array is required')

    entries = []
    seen = set()
    for index, raw in enumerate(ordered):
        if not isinstance(raw, dict) or raw.get('line_id') is None:
            raise BusinessLogicError('Each entry requires a line id')
        line_id = parse_int(raw['line_id'], 'line_id')
        if line_id in seen:
            raise BusinessLogicError(f'Line {line_id} appears more than once')
        seen.add(line_id)
        display_order = raw.get('display_order')
        entries.append({
            'line_id': line_id,
            'rank': (parse_int(display_order, 'display_order') if display_order is not None else index, index),
            'has_parent': 'parent_line_id' in raw,
            'parent_line_id': raw.get('parent_line_id'),
        })

    with atomic(session, tenant_id):
        menu = get_menu(session, tenant_id, menu_id, lock=True)
        require_draft(menu)

        all_lines = session.query(MenuLine).filter(
            MenuLine.menu_id == menu.id,
            MenuLine.tenant_id == tenant_id
        ).with_for_update().all()
        by_id = {line.id: line for line in all_lines}

        missing = [e['line_id'] for e in entries if e['line_id'] not in by_id]
        if missing:
            raise LineNotFoundError('Some lines not found or do not belong to this menu', line_ids=missing)

        affected_parents = set()
        rank = {}
        for entry in entries:
            line = by_id[entry['line_id']]
            rank[line.id] = entry['rank']
            affected_parents.add(line.parent_line_id)
            if not entry['has_parent']:
                continue

            new_parent_id = entry['parent_line_id']
            if new_parent_id is not None:
                new_parent_id = parse_int(new_parent_id, 'parent_line_id')
                parent = by_id.get(new_parent_id)
                if line.is_section:
                    raise InvalidParentError('Section lines cannot be nested under another line')
                if parent is None or not parent.is_section or parent.id == line.id:
                    raise InvalidParentError()
            line.parent_line_id = new_parent_id
            affected_parents.add(new_parent_id)

        groups = {}
        for line in all_lines:
            groups.setdefault(line.parent_line_id, []).append(line)

        for parent_id in affected_parents:
            members = groups.get(parent_id, [])
            listed = sorted((m for m in members if m.id in rank), key=lambda m: rank[m.id])
            rest = sorted((m for m in members if m.id not in rank), key=lambda m: (m.display_order, m.id))
            _compact(listed + rest)

    logger.info(f"Reordered {len(entries)} line(s) in menu {menu_id}")
    return [by_id[e['line_id']] for e in entries]


def move_item_line(session: Session, tenant_id: int, line_id: int, target_section_line_id: int) -> MenuLine:
    """Move an item line under another section line of the same draft menu, at the end."""
    target_section_line_id = parse_int(target_section_line_id, 'target_section_line_id')
    with atomic(session, tenant_id):
        line = _get_line(session, tenant_id, line_id)
        menu = get_menu(session, tenant_id, line.menu_id, lock=True)
        require_draft(menu)

        if not line.is_item:
            raise BusinessLogicError('Only item lines can be moved into a section')
        target = _get_parent_section_line(session, tenant_id, menu.id, target_section_line_id)

        if line.parent_line_id == target.id:
            return line

        old_parent_id = line.parent_line_id
        max_order = session.query(func.max(MenuLine.display_order)).filter(
            MenuLine.menu_id == menu.id,
            MenuLine.parent_line_id == target.id
        ).scalar()
        line.parent_line_id = target.id
        line.display_order = (max_order if max_order is not None else -1) + 1
        session.flush()

        _compact(_siblings(session, menu.id, old_parent_id))

    logger.info(f"Moved item line {line_id} to section line {target_section_line_id}")
    return line


def delete_line(session: Session, tenant_id: int, line_id: int, policy: Optional[str] = None) -> Dict[str, Any]:
    """
    Remove a line from a draft menu.

    For a section line with children, `policy` decides: 'cascade' (default)
    deletes the children, 'reparent' moves them to the top level after the
    existing top-level lines, 'reject' refuses while children exist.
    Remaining siblings are renumbered.
    """
    policy = policy or 'cascade'
    if policy not in DELETE_POLICIES:
        raise BusinessLogicError(f"Invalid delete policy '{policy}'")

    with atomic(session, tenant_id):
        line = _get_line(session, tenant_id, line_id)
        menu = get_menu(session, tenant_id, line.menu_id, lock=True)
        require_draft(menu)

        children = _siblings(session, menu.id, line.id) if line.is_section else []
        removed = reparented = 0
        if children:
            if policy == 'reject':
                raise BusinessLogicError(
                    f'Section line has {len(children)} item line(s); remove or move them first'
                )
            if policy == 'cascade':
                for child in children:
                    session.delete(child)
                removed = len(children)
            else:
                top_level = _siblings(session, menu.id, None)
                next_order = max((l.display_order for l in top_level), default=-1) + 1
                for offset, child in enumerate(children):
                    child.parent_line_id = None
                    child.display_order = next_order + offset
                reparented = len(children)
            session.flush()

        parent_id = line.parent_line_id
        session.delete(line)
        session.flush()
        _compact(_siblings(session, menu.id, parent_id))

    logger.info(
        f"Deleted line {line_id} from menu {menu.id} (policy={policy}, "
        f"removed_children={removed}, reparented_children={reparented})"
    )
    return {
        'deleted_line_id': line_id,
        'policy': policy,
        'removed_children': removed,
        'reparented_children': reparented,
    }
