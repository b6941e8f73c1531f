"""
Critical integration tests for tenant isolation.
These tests ensure that one tenant can neither read nor change another tenant's menus.
"""

import pytest

from app.exceptions import NotFoundError
from app.models import MenuLine, Section
from app.services import catalog_service, menu_line_service
from app.services.menu_line_service import insert_line
from app.services.visibility_service import toggle_line


@pytest.fixture
def tenant2_menu(session, tenant2, make_menu, make_section, make_item):
    menu = make_menu('MAIN', tenant_id=tenant2.id)
    section = make_section('Theirs', tenant_id=tenant2.id)
    item = make_item('Their soup', tenant_id=tenant2.id)
    s_line = insert_line(session, tenant2.id, menu.id, 'section', section.id)
    i_line = insert_line(session, tenant2.id, menu.id, 'item', item.id, parent_line_id=s_line.id)
    return {'menu': menu, 'section': section, 'item': item, 's_line': s_line, 'i_line': i_line}


class TestCatalogIsolation:

    def test_lists_are_tenant_scoped(self, session, tenant1, tenant2, make_section, tenant2_menu):
        mine = make_section('Mine')

        assert [s.id for s in catalog_service.list_sections(session, tenant1.id)] == [mine.id]
        assert [m.code for m in catalog_service.list_menus(session, tenant1.id)] == []

    def test_same_menu_code_in_different_tenants(self, session, tenant1, make_menu, tenant2_menu):
        mine = make_menu('MAIN')
        assert mine.code == tenant2_menu['menu'].code
        assert mine.tenant_id != tenant2_menu['menu'].tenant_id

    def test_cannot_read_other_tenant_menu(self, session, tenant1, tenant2_menu):
        with pytest.raises(NotFoundError):
            menu_line_service.get_menu_tree(session, tenant1.id, tenant2_menu['menu'].id)

    def test_cannot_update_other_tenant_section(self, session, tenant1, tenant2_menu):
        with pytest.raises(NotFoundError):
            catalog_service.update_section(session, tenant1.id, tenant2_menu['section'].id, is_active=False)
        assert session.query(Section.is_active).filter(Section.id == tenant2_menu['section'].id).scalar() is True


class TestLineIsolation:

    def test_cannot_place_other_tenant_item(self, session, tenant1, draft_menu, tenant2_menu):
        with pytest.raises(NotFoundError):
            insert_line(session, tenant1.id, draft_menu.id, 'item', tenant2_menu['item'].id)

    def test_cannot_insert_into_other_tenant_menu(self, session, tenant1, make_item, tenant2_menu):
        with pytest.raises(NotFoundError):
            insert_line(session, tenant1.id, tenant2_menu['menu'].id, 'item', make_item('Mine').id)

    def test_cannot_toggle_other_tenant_line(self, session, tenant1, tenant2_menu):
        with pytest.raises(NotFoundError):
            toggle_line(session, tenant1.id, tenant2_menu['menu'].id, tenant2_menu['s_line'].id)
        enabled = session.query(MenuLine.is_enabled).filter(MenuLine.id == tenant2_menu['s_line'].id).scalar()
        assert enabled is True

    def test_cannot_delete_other_tenant_line(self, session, tenant1, tenant2_menu):
        with pytest.raises(NotFoundError):
            menu_line_service.delete_line(session, tenant1.id, tenant2_menu['i_line'].id)
