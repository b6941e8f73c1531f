"""
Publication service - which published menus are live at which location.

Two ways to make a menu live, with different scope:

- activate(): upsert of the (location, menu) publication. Other menus already
  current at the location stay current, so a location can serve several
  menus at once (e.g. food + drinks).
- set_current(..., True): single-active-menu switch. Every other publication
  at the location is retired first.

Every mutation locks the location row before any publication row, so
concurrent switches at one location serialize.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.exceptions import ConflictError, MenuNotPublishedError, NotFoundError
from app.models import MenuPublication
from app.services.catalog_service import get_location, get_menu
from app.services.transaction import atomic

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


def get_publication(session: Session, tenant_id: int, publication_id: int, lock: bool = False) -> MenuPublication:
    query = session.query(MenuPublication).filter(
        MenuPublication.id == publication_id,
        MenuPublication.tenant_id == tenant_id
    )
    if lock:
        query = query.with_for_update().populate_existing()
    publication = query.first()
    if not publication:
        raise NotFoundError('Publication not found')
    return publication


def _lock_for_location(session: Session, tenant_id: int, publication_id: int) -> MenuPublication:
    """Lock the publication's location row, then the publication itself."""
    publication = get_publication(session, tenant_id, publication_id)
    get_location(session, tenant_id, publication.location_id, lock=True)
    return get_publication(session, tenant_id, publication_id, lock=True)


def list_publications(session: Session, tenant_id: int, location_id: Optional[int] = None) -> List[MenuPublication]:
    query = session.query(MenuPublication).options(
        joinedload(MenuPublication.menu),
        joinedload(MenuPublication.location)
    ).filter(MenuPublication.tenant_id == tenant_id)
    if location_id is not None:
        query = query.filter(MenuPublication.location_id == location_id)
    return query.order_by(MenuPublication.location_id, MenuPublication.goes_live_at, MenuPublication.id).all()


def _activate_once(session: Session, tenant_id: int, location_id: int, menu_id: int) -> MenuPublication:
    with atomic(session, tenant_id):
        location = get_location(session, tenant_id, location_id, lock=True)
        menu = get_menu(session, tenant_id, menu_id)
        if not menu.is_published:
            raise MenuNotPublishedError(menu.code)

        publication = session.query(MenuPublication).filter(
            MenuPublication.location_id == location.id,
            MenuPublication.menu_id == menu.id
        ).with_for_update().first()

        if publication:
            publication.is_current = True
            publication.goes_live_at = _now()
            publication.retires_at = None
        else:
            publication = MenuPublication(
                tenant_id=tenant_id,
                location_id=location.id,
                menu_id=menu.id,
                is_current=True,
                goes_live_at=_now()
            )
            session.add(publication)
        try:
            session.flush()
        except IntegrityError:
            raise ConflictError(f'Menu {menu.code} is being activated concurrently at this location')
    return publication


def activate(session: Session, tenant_id: int, location_id: int, menu_id: int) -> MenuPublication:
    """
    Make a published menu live at a location (upsert).

    Existing publication -> reactivated with a fresh goes_live_at and no
    retirement; otherwise a new one. Sibling publications are not touched.
    A concurrent insert of the same pair is retried once as a reactivation.
    """
    try:
        publication = _activate_once(session, tenant_id, location_id, menu_id)
    except ConflictError:
        logger.warning(f"Activation race for menu {menu_id} at location {location_id}, retrying")
        publication = _activate_once(session, tenant_id, location_id, menu_id)

    logger.info(f"Menu {menu_id} activated at location {location_id} (publication {publication.id})")
    return publication


def deactivate(session: Session, tenant_id: int, publication_id: int) -> MenuPublication:
    """Retire a publication. The row is kept for history, marked not current."""
    with atomic(session, tenant_id):
        publication = _lock_for_location(session, tenant_id, publication_id)
        if publication.is_current:
            publication.is_current = False
            publication.retires_at = _now()
    logger.info(f"Publication {publication_id} deactivated")
    return publication


def set_current(session: Session, tenant_id: int, publication_id: int, is_current: bool = True) -> MenuPublication:
    """
    Make a publication the only current one at its location.

    Unlike activate(), every other publication at the location is retired.
    Passing is_current=False is the same as deactivate().
    """
    if not is_current:
        return deactivate(session, tenant_id, publication_id)

    with atomic(session, tenant_id):
        publication = _lock_for_location(session, tenant_id, publication_id)
        menu = get_menu(session, tenant_id, publication.menu_id)
        if not menu.is_published:
            raise MenuNotPublishedError(menu.code)

        now = _now()
        retired = session.query(MenuPublication).filter(
            MenuPublication.location_id == publication.location_id,
            MenuPublication.id != publication.id,
            MenuPublication.is_current.is_(True)
        ).update(
            {MenuPublication.is_current: False, MenuPublication.retires_at: now},
            synchronize_session='fetch'
        )
        publication.is_current = True
        publication.goes_live_at = now
        publication.retires_at = None

    logger.info(
        f"Publication {publication_id} set as the only current menu at location "
        f"{publication.location_id} ({retired} retired)"
    )
    return publication
