"""Transaction boundary shared by every mutating catalog operation."""
import logging
from contextlib import contextmanager

from app.exceptions import CatalogError
from app.services.cache_service import invalidate_rendered_menus

logger = logging.getLogger(__name__)


@contextmanager
def atomic(session, tenant_id=None):
    """
    Run a block as one all-or-nothing transaction.

    Commits on success and rolls back on any error, so a failing cascade never
    leaves partially applied rows. Domain errors propagate unchanged. After a
    successful commit the tenant's rendered-menu cache is invalidated so the
    change is visible on the next read.
    """
    try:
        yield session
        session.commit()
    except CatalogError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception("Transaction rolled back after unexpected error")
        raise

    if tenant_id is not None:
        invalidate_rendered_menus(tenant_id)
