"""
HTTP API tests: admin endpoints (auth, errors, line tree, toggles, publications) and the public menu.
"""

import pytest

from app.models import AuditLog, AuditAction


def _section(client, title):
    response = client.post('/api/admin/sections', json={'translations': [{'locale': 'en-US', 'title': title}]})
    assert response.status_code == 201
    return response.get_json()['id']


def _item(client, name, price='5.00'):
    response = client.post('/api/admin/items', json={
        'translations': [{'locale': 'en-US', 'name': name}], 'price': price
    })
    assert response.status_code == 201
    return response.get_json()['id']


def _line(client, menu_id, line_type, ref_id, parent_line_id=None):
    response = client.post(f'/api/admin/menus/{menu_id}/lines', json={
        'line_type': line_type, 'ref_id': ref_id, 'parent_line_id': parent_line_id
    })
    assert response.status_code == 201, response.get_json()
    return response.get_json()['id']


@pytest.fixture
def owner(login, tenant1):
    login(tenant1.id, role='OWNER', user_id=42)
    return tenant1.id


@pytest.fixture
def menu_tree(client, owner):
    """Draft menu with [Starters -> (Soup, Salad), Mains]."""
    menu_id = client.post('/api/admin/menus', json={
        'code': 'MAIN', 'translations': [{'locale': 'en-US', 'name': 'Main'}]
    }).get_json()['id']
    starters = _line(client, menu_id, 'section', _section(client, 'Starters'))
    mains = _line(client, menu_id, 'section', _section(client, 'Mains'))
    soup = _line(client, menu_id, 'item', _item(client, 'Soup'), parent_line_id=starters)
    salad = _line(client, menu_id, 'item', _item(client, 'Salad'), parent_line_id=starters)
    return {'menu_id': menu_id, 'starters': starters, 'mains': mains, 'soup': soup, 'salad': salad}


class TestAuth:

    def test_requires_principal(self, client):
        response = client.get('/api/admin/menus')
        assert response.status_code == 401
        assert response.get_json()['error'] == 'UnauthorizedError'

    def test_staff_cannot_edit(self, client, login, tenant1):
        login(tenant1.id, role='STAFF')
        assert client.get('/api/admin/menus').status_code == 200
        response = client.post('/api/admin/menus', json={'code': 'X', 'translations': [{'locale': 'en-US', 'name': 'X'}]})
        assert response.status_code == 403

    def test_inactive_tenant_rejected(self, client, login, session, tenant1):
        tenant1.active = False
        session.commit()
        login(tenant1.id)
        assert client.get('/api/admin/menus').status_code == 401


class TestLineTreeApi:

    def test_tree(self, client, menu_tree):
        body = client.get(f"/api/admin/menus/{menu_tree['menu_id']}").get_json()

        assert body['menu']['status'] == 'draft'
        assert [l['id'] for l in body['lines']] == [menu_tree['starters'], menu_tree['mains']]
        assert [c['id'] for c in body['lines'][0]['children']] == [menu_tree['soup'], menu_tree['salad']]

    def test_reorder(self, client, menu_tree):
        response = client.put(f"/api/admin/menus/{menu_tree['menu_id']}/lines/reorder", json={'lines': [
            {'line_id': menu_tree['mains'], 'display_order': 0},
            {'line_id': menu_tree['starters'], 'display_order': 1},
        ]})
        assert response.status_code == 200

        body = client.get(f"/api/admin/menus/{menu_tree['menu_id']}").get_json()
        assert [l['id'] for l in body['lines']] == [menu_tree['mains'], menu_tree['starters']]

    def test_reorder_unknown_line(self, client, menu_tree):
        response = client.put(f"/api/admin/menus/{menu_tree['menu_id']}/lines/reorder", json={'lines': [
            {'line_id': 9999, 'display_order': 0},
        ]})
        assert response.status_code == 404
        assert response.get_json()['line_ids'] == [9999]

    def test_non_integer_values_are_400(self, client, menu_tree):
        menu_id = menu_tree['menu_id']
        response = client.put(f'/api/admin/menus/{menu_id}/lines/reorder', json={'lines': [{'line_id': 'abc'}]})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'BusinessLogicError'

        response = client.post(f'/api/admin/menus/{menu_id}/lines', json={
            'line_type': 'item', 'ref_id': _item(client, 'Bread'), 'position': 'last'
        })
        assert response.status_code == 400

        response = client.post(f"/api/admin/lines/{menu_tree['soup']}/move", json={'target_section_line_id': 'x'})
        assert response.status_code == 400

        location = client.post('/api/admin/locations', json={'name': 'Uptown', 'slug': 'uptown'}).get_json()
        response = client.post(f"/api/admin/locations/{location['id']}/publications", json={'menu_id': 'abc'})
        assert response.status_code == 400

    def test_invalid_parent(self, client, menu_tree):
        response = client.post(f"/api/admin/menus/{menu_tree['menu_id']}/lines", json={
            'line_type': 'item', 'ref_id': _item(client, 'Bread'), 'parent_line_id': menu_tree['soup']
        })
        assert response.status_code == 400
        assert response.get_json()['error'] == 'InvalidParentError'

    def test_move(self, client, menu_tree):
        response = client.post(f"/api/admin/lines/{menu_tree['soup']}/move", json={
            'target_section_line_id': menu_tree['mains']
        })
        assert response.status_code == 200
        assert response.get_json()['parent_line_id'] == menu_tree['mains']
        assert response.get_json()['display_order'] == 0

    def test_delete_uses_configured_policy(self, client, app, menu_tree, monkeypatch):
        monkeypatch.setitem(app.config, 'MENU_LINE_DELETE_POLICY', 'reparent')

        body = client.delete(f"/api/admin/lines/{menu_tree['starters']}").get_json()

        assert body['policy'] == 'reparent'
        assert body['reparented_children'] == 2

    def test_published_menu_is_not_editable(self, client, menu_tree):
        assert client.post(f"/api/admin/menus/{menu_tree['menu_id']}/publish").status_code == 200

        response = client.delete(f"/api/admin/lines/{menu_tree['soup']}")
        assert response.status_code == 409
        assert response.get_json()['error'] == 'MenuNotEditableError'

        response = client.patch(f"/api/admin/menus/{menu_tree['menu_id']}/status", json={'status': 'draft'})
        assert response.status_code == 400


class TestMenuSectionsApi:

    def test_roster_follows_section_lines(self, client, menu_tree):
        body = client.get(f"/api/admin/menus/{menu_tree['menu_id']}/sections").get_json()
        assert [s['translations'][0]['title'] for s in body['sections']] == ['Starters', 'Mains']
        assert [s['display_order'] for s in body['sections']] == [0, 1]

    def test_attach_reorder_detach(self, client, session, menu_tree):
        menu_id = menu_tree['menu_id']
        desserts = _section(client, 'Desserts')

        response = client.post(f'/api/admin/menus/{menu_id}/sections', json={'section_id': desserts})
        assert response.status_code == 201
        assert response.get_json()['display_order'] == 2
        assert client.post(f'/api/admin/menus/{menu_id}/sections', json={'section_id': desserts}).status_code == 409

        response = client.patch(f'/api/admin/menus/{menu_id}/sections/reorder', json={'section_ids': [desserts]})
        assert response.status_code == 200
        assert response.get_json()['sections'][0]['id'] == desserts

        starters = client.get(f'/api/admin/menus/{menu_id}').get_json()['lines'][0]['section_id']
        response = client.delete(f'/api/admin/menus/{menu_id}/sections/{starters}')
        assert response.status_code == 200
        assert response.get_json()['removed_lines'] == 3

        lines = client.get(f'/api/admin/menus/{menu_id}').get_json()['lines']
        assert [l['id'] for l in lines] == [menu_tree['mains']]
        entries = session.query(AuditLog).filter(AuditLog.entity_type == 'menu_section').all()
        assert {e.action for e in entries} == {AuditAction.CREATE, AuditAction.REORDER, AuditAction.DELETE}

    def test_reorder_requires_list(self, client, menu_tree):
        response = client.patch(f"/api/admin/menus/{menu_tree['menu_id']}/sections/reorder", json={'section_ids': 'x'})
        assert response.status_code == 400


class TestToggleApi:

    def test_section_toggle(self, client, menu_tree):
        url = f"/api/admin/menus/{menu_tree['menu_id']}/lines/{menu_tree['starters']}/toggle"
        body = client.post(url).get_json()

        assert body['is_enabled'] is False
        assert body['scope'] == 'menu'
        assert body['affected'] == 2

    def test_toggle_is_audited(self, client, session, menu_tree):
        client.post(f"/api/admin/menus/{menu_tree['menu_id']}/lines/{menu_tree['soup']}/toggle")

        entry = session.query(AuditLog).filter(AuditLog.action == AuditAction.TOGGLE).one()
        assert entry.user_id == 42
        assert entry.entity_type == 'menu_line'
        assert entry.entity_id == menu_tree['soup']

    def test_section_activation(self, client, menu_tree):
        section_id = client.get(f"/api/admin/menus/{menu_tree['menu_id']}").get_json()['lines'][0]['section_id']

        response = client.post(f'/api/admin/sections/{section_id}/active', json={'is_active': False})

        assert response.status_code == 200
        assert response.get_json()['section_lines'] == 1
        assert response.get_json()['child_lines'] == 2

    def test_section_activation_requires_boolean(self, client, menu_tree):
        response = client.post('/api/admin/sections/1/active', json={'is_active': 'no'})
        assert response.status_code == 400


class TestPublicationAndPublicApi:

    @pytest.fixture
    def live(self, client, session, tenant1, menu_tree):
        slug = tenant1.slug
        location = client.post('/api/admin/locations', json={'name': 'Downtown', 'slug': 'downtown'}).get_json()
        client.post(f"/api/admin/menus/{menu_tree['menu_id']}/publish")
        response = client.post(f"/api/admin/locations/{location['id']}/publications", json={
            'menu_id': menu_tree['menu_id']
        })
        assert response.status_code == 201
        return {'location': location, 'publication': response.get_json(), 'slug': slug}

    def test_activate_draft_menu_fails(self, client, menu_tree):
        location = client.post('/api/admin/locations', json={'name': 'Uptown', 'slug': 'uptown'}).get_json()
        response = client.post(f"/api/admin/locations/{location['id']}/publications", json={
            'menu_id': menu_tree['menu_id']
        })
        assert response.status_code == 409
        assert response.get_json()['error'] == 'MenuNotPublishedError'

    def test_public_menu(self, client, live):
        response = client.get(f"/api/t/{live['slug']}/l/downtown/menu?locale=en-US")

        assert response.status_code == 200
        sections = response.get_json()['sections']
        assert [s['title'] for s in sections] == ['Starters', 'Mains']
        assert [i['name'] for i in sections[0]['items']] == ['Soup', 'Salad']
        assert sections[1]['items'] == []

    def test_public_menu_after_deactivation(self, client, live):
        response = client.post(f"/api/admin/publications/{live['publication']['id']}/deactivate")
        assert response.get_json()['is_current'] is False

        assert client.get(f"/api/t/{live['slug']}/l/downtown/menu").get_json()['sections'] == []

    def test_set_current(self, client, live):
        response = client.post(f"/api/admin/publications/{live['publication']['id']}/current", json={'is_current': True})
        assert response.status_code == 200
        assert response.get_json()['is_current'] is True

        listed = client.get(f"/api/admin/publications?location_id={live['location']['id']}").get_json()
        assert [p['id'] for p in listed['publications']] == [live['publication']['id']]

    def test_unknown_tenant(self, client):
        response = client.get('/api/t/nope/l/downtown/menu')
        assert response.status_code == 404
        assert response.get_json()['status'] == 'error'


class TestMisc:

    def test_unknown_route_is_json(self, client):
        response = client.get('/api/admin/does-not-exist')
        assert response.status_code == 404
        assert response.get_json()['status'] == 'error'

    def test_metrics(self, client):
        response = client.get('/metrics')
        assert response.status_code == 200
        assert b'http_requests_total' in response.data

    def test_audit_logs_listing(self, client, menu_tree):
        body = client.get('/api/admin/audit-logs?action=CREATE').get_json()
        assert body['audit_logs']
        assert all(e['action'] == 'CREATE' for e in body['audit_logs'])
