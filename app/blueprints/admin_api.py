"""Admin JSON API - catalog, menu line tree, visibility and publications (tenant scoped)."""
from flask import Blueprint, request, current_app, g, jsonify
import logging

from app.blueprints.metrics import record_cascade
from app.database import get_session
from app.exceptions import BusinessLogicError
from app.middleware import require_tenant, require_role
from app.models import AuditAction
from app.services import (
    audit_service, catalog_service, menu_line_service, menu_render_service,
    menu_section_service, publication_service, visibility_service
)
from app.utils.serializers import (
    serialize_audit_log, serialize_item, serialize_line, serialize_location, serialize_menu,
    serialize_menu_section, serialize_publication, serialize_section, serialize_tree
)

logger = logging.getLogger(__name__)

admin_api_bp = Blueprint('admin_api', __name__, url_prefix='/api/admin')

EDITORS = ('OWNER', 'ADMIN')


def _payload():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BusinessLogicError('JSON object expected')
    return data


def _require(data, *keys):
    missing = [k for k in keys if data.get(k) in (None, '')]
    if missing:
        raise BusinessLogicError(f"Missing required field(s): {', '.join(missing)}")


def _int_arg(name):
    value = request.args.get(name)
    if value in (None, ''):
        return None
    try:
        return int(value)
    except ValueError:
        raise BusinessLogicError(f"Query parameter '{name}' must be an integer")


def _int_field(data, name):
    return catalog_service.parse_int(data.get(name), name)


def _audit(action, entity_type, entity_id, old_value=None, new_value=None):
    audit_service.log_action(
        get_session(), g.tenant_id, g.user_id, action,
        entity_type=entity_type, entity_id=entity_id,
        old_value=old_value, new_value=new_value
    )


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

@admin_api_bp.route('/sections', methods=['GET'])
@require_tenant
def list_sections():
    sections = catalog_service.list_sections(get_session(), g.tenant_id)
    return jsonify({'sections': [serialize_section(s) for s in sections]})


@admin_api_bp.route('/sections', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def create_section():
    data = _payload()
    section = catalog_service.create_section(
        get_session(), g.tenant_id, data.get('translations'), data.get('is_active', True)
    )
    body = serialize_section(section)
    _audit(AuditAction.CREATE, 'section', section.id, new_value=body)
    return jsonify(body), 201


@admin_api_bp.route('/sections/<int:section_id>', methods=['PATCH'])
@require_tenant
@require_role(*EDITORS)
def update_section(section_id):
    data = _payload()
    db = get_session()
    old = serialize_section(catalog_service.get_section(db, g.tenant_id, section_id))
    section = catalog_service.update_section(
        db, g.tenant_id, section_id,
        translations=data.get('translations'),
        is_active=data.get('is_active')
    )
    body = serialize_section(section)
    _audit(AuditAction.UPDATE, 'section', section_id, old_value=old, new_value=body)
    return jsonify(body)


@admin_api_bp.route('/sections/<int:section_id>/active', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def set_section_active(section_id):
    """Activate/deactivate a section in every menu it is placed in."""
    data = _payload()
    if not isinstance(data.get('is_active'), bool):
        raise BusinessLogicError('is_active (boolean) is required')
    result = visibility_service.set_section_active(get_session(), g.tenant_id, section_id, data['is_active'])
    record_cascade('section', result['section_lines'] + result['child_lines'])
    action = AuditAction.ACTIVATE if result['is_active'] else AuditAction.DEACTIVATE
    _audit(action, 'section', section_id, new_value={
        'is_active': result['is_active'],
        'section_lines': result['section_lines'],
        'child_lines': result['child_lines'],
    })
    return jsonify({
        'section': serialize_section(result['section']),
        'section_lines': result['section_lines'],
        'child_lines': result['child_lines'],
    })


@admin_api_bp.route('/sections/<int:section_id>', methods=['DELETE'])
@require_tenant
@require_role(*EDITORS)
def delete_section(section_id):
    catalog_service.delete_section(get_session(), g.tenant_id, section_id)
    _audit(AuditAction.DELETE, 'section', section_id)
    return jsonify({'status': 'ok', 'deleted_id': section_id})


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

ITEM_FIELDS = ('translations', 'price', 'currency', 'is_visible', 'allergen_ids', 'dietary_flag_ids', 'ingredient_ids')


@admin_api_bp.route('/items', methods=['GET'])
@require_tenant
def list_items():
    items = catalog_service.list_items(get_session(), g.tenant_id)
    return jsonify({'items': [serialize_item(i) for i in items]})


@admin_api_bp.route('/items', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def create_item():
    data = _payload()
    item = catalog_service.create_item(
        get_session(), g.tenant_id,
        data.get('translations'),
        price=data.get('price'),
        currency=data.get('currency'),
        is_visible=data.get('is_visible', True),
        allergen_ids=data.get('allergen_ids') or (),
        dietary_flag_ids=data.get('dietary_flag_ids') or (),
        ingredient_ids=data.get('ingredient_ids') or ()
    )
    body = serialize_item(item)
    _audit(AuditAction.CREATE, 'item', item.id, new_value=body)
    return jsonify(body), 201


@admin_api_bp.route('/items/<int:item_id>', methods=['PATCH'])
@require_tenant
@require_role(*EDITORS)
def update_item(item_id):
    data = _payload()
    changes = {k: data[k] for k in ITEM_FIELDS if k in data}
    db = get_session()
    old = serialize_item(catalog_service.get_item(db, g.tenant_id, item_id))
    item = catalog_service.update_item(db, g.tenant_id, item_id, **changes)
    body = serialize_item(item)
    _audit(AuditAction.UPDATE, 'item', item_id, old_value=old, new_value=body)
    return jsonify(body)


@admin_api_bp.route('/items/<int:item_id>/visibility', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def set_item_visible(item_id):
    """Show/hide an item in every menu."""
    data = _payload()
    if not isinstance(data.get('is_visible'), bool):
        raise BusinessLogicError('is_visible (boolean) is required')
    result = visibility_service.set_item_visible(get_session(), g.tenant_id, item_id, data['is_visible'])
    record_cascade('item', result['affected'])
    _audit(AuditAction.TOGGLE, 'item', item_id, new_value={
        'is_visible': result['is_visible'], 'affected': result['affected']
    })
    return jsonify({'item': serialize_item(result['item']), 'affected': result['affected']})


@admin_api_bp.route('/items/<int:item_id>', methods=['DELETE'])
@require_tenant
@require_role(*EDITORS)
def delete_item(item_id):
    catalog_service.delete_item(get_session(), g.tenant_id, item_id)
    _audit(AuditAction.DELETE, 'item', item_id)
    return jsonify({'status': 'ok', 'deleted_id': item_id})


# ---------------------------------------------------------------------------
# Reference data & locations
# ---------------------------------------------------------------------------

@admin_api_bp.route('/allergens', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def create_allergen():
    data = _payload()
    row = catalog_service.create_allergen(get_session(), g.tenant_id, data.get('code'), data.get('name'))
    _audit(AuditAction.CREATE, 'allergen', row.id, new_value={'code': row.code, 'name': row.name})
    return jsonify({'id': row.id, 'code': row.code, 'name': row.name}), 201


@admin_api_bp.route('/dietary-flags', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def create_dietary_flag():
    data = _payload()
    row = catalog_service.create_dietary_flag(get_session(), g.tenant_id, data.get('code'), data.get('name'))
    _audit(AuditAction.CREATE, 'dietary_flag', row.id, new_value={'code': row.code, 'name': row.name})
    return jsonify({'id': row.id, 'code': row.code, 'name': row.name}), 201


@admin_api_bp.route('/ingredients', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def create_ingredient():
    data = _payload()
    row = catalog_service.create_ingredient(get_session(), g.tenant_id, data.get('name'))
    _audit(AuditAction.CREATE, 'ingredient', row.id, new_value={'name': row.name})
    return jsonify({'id': row.id, 'name': row.name}), 201


@admin_api_bp.route('/locations', methods=['GET'])
@require_tenant
def list_locations():
    locations = catalog_service.list_locations(get_session(), g.tenant_id)
    return jsonify({'locations': [serialize_location(l) for l in locations]})


@admin_api_bp.route('/locations', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def create_location():
    data = _payload()
    _require(data, 'name', 'slug')
    location = catalog_service.create_location(
        get_session(), g.tenant_id, data['name'], data['slug'], city=data.get('city')
    )
    body = serialize_location(location)
    _audit(AuditAction.CREATE, 'location', location.id, new_value=body)
    return jsonify(body), 201


@admin_api_bp.route('/locations/<int:location_id>/preview', methods=['GET'])
@require_tenant
def preview_location_menu(location_id):
    """Uncached render of what the location currently serves."""
    include_empty = request.args.get('include_empty', '1') not in ('0', 'false')
    result = menu_render_service.render_menu(
        get_session(), g.tenant_id, location_id,
        locale=request.args.get('locale'),
        include_empty=include_empty
    )
    return jsonify(result)


# ---------------------------------------------------------------------------
# Menus
# ---------------------------------------------------------------------------

@admin_api_bp.route('/menus', methods=['GET'])
@require_tenant
def list_menus():
    menus = catalog_service.list_menus(get_session(), g.tenant_id)
    return jsonify({'menus': [serialize_menu(m) for m in menus]})


@admin_api_bp.route('/menus', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def create_menu():
    data = _payload()
    _require(data, 'code')
    menu = catalog_service.create_menu(
        get_session(), g.tenant_id, data['code'], data.get('translations'), currency=data.get('currency')
    )
    body = serialize_menu(menu)
    _audit(AuditAction.CREATE, 'menu', menu.id, new_value=body)
    return jsonify(body), 201


@admin_api_bp.route('/menus/<int:menu_id>', methods=['GET'])
@require_tenant
def get_menu(menu_id):
    menu, lines = menu_line_service.get_menu_tree(get_session(), g.tenant_id, menu_id)
    return jsonify(serialize_tree(menu, lines))


@admin_api_bp.route('/menus/<int:menu_id>/publish', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def publish_menu(menu_id):
    menu = catalog_service.publish_menu(get_session(), g.tenant_id, menu_id)
    body = serialize_menu(menu)
    _audit(AuditAction.PUBLISH, 'menu', menu_id, new_value={'status': body['status']})
    return jsonify(body)


@admin_api_bp.route('/menus/<int:menu_id>/status', methods=['PATCH'])
@require_tenant
@require_role(*EDITORS)
def set_menu_status(menu_id):
    data = _payload()
    _require(data, 'status')
    menu = catalog_service.set_menu_status(get_session(), g.tenant_id, menu_id, data['status'])
    return jsonify(serialize_menu(menu))


@admin_api_bp.route('/menus/<int:menu_id>', methods=['DELETE'])
@require_tenant
@require_role('OWNER')
def delete_menu(menu_id):
    catalog_service.delete_menu(get_session(), g.tenant_id, menu_id)
    _audit(AuditAction.DELETE, 'menu', menu_id)
    return jsonify({'status': 'ok', 'deleted_id': menu_id})


# ---------------------------------------------------------------------------
# Menu sections
# ---------------------------------------------------------------------------

@admin_api_bp.route('/menus/<int:menu_id>/sections', methods=['GET'])
@require_tenant
def list_menu_sections(menu_id):
    rows = menu_section_service.list_menu_sections(get_session(), g.tenant_id, menu_id)
    return jsonify({'sections': [serialize_menu_section(r) for r in rows]})


@admin_api_bp.route('/menus/<int:menu_id>/sections', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def attach_section(menu_id):
    data = _payload()
    _require(data, 'section_id')
    row = menu_section_service.attach_section(
        get_session(), g.tenant_id, menu_id, data['section_id'], position=data.get('position')
    )
    body = serialize_menu_section(row)
    _audit(AuditAction.CREATE, 'menu_section', row.id, new_value=body)
    return jsonify(body), 201


@admin_api_bp.route('/menus/<int:menu_id>/sections/<int:section_id>', methods=['DELETE'])
@require_tenant
@require_role(*EDITORS)
def detach_section(menu_id, section_id):
    result = menu_section_service.detach_section(get_session(), g.tenant_id, menu_id, section_id)
    _audit(AuditAction.DELETE, 'menu_section', section_id, new_value=dict(result, menu_id=menu_id))
    return jsonify(dict(result, status='ok'))


@admin_api_bp.route('/menus/<int:menu_id>/sections/reorder', methods=['PATCH'])
@require_tenant
@require_role(*EDITORS)
def reorder_sections(menu_id):
    """Body: {"section_ids": [4, 2, 7]}"""
    data = _payload()
    rows = menu_section_service.reorder_sections(get_session(), g.tenant_id, menu_id, data.get('section_ids'))
    _audit(AuditAction.REORDER, 'menu_section', menu_id, new_value={'section_ids': data.get('section_ids')})
    return jsonify({'sections': [serialize_menu_section(r) for r in rows]})


# ---------------------------------------------------------------------------
# Menu lines
# ---------------------------------------------------------------------------

@admin_api_bp.route('/menus/<int:menu_id>/lines', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def insert_line(menu_id):
    data = _payload()
    _require(data, 'line_type')
    line_type = data['line_type']
    ref_id = data.get('ref_id')
    if ref_id is None:
        ref_id = data.get('section_id') if line_type == 'section' else data.get('item_id')
    line = menu_line_service.insert_line(
        get_session(), g.tenant_id, menu_id, line_type, ref_id,
        parent_line_id=data.get('parent_line_id'),
        position=data.get('position')
    )
    body = serialize_line(line)
    _audit(AuditAction.CREATE, 'menu_line', line.id, new_value=body)
    return jsonify(body), 201


@admin_api_bp.route('/menus/<int:menu_id>/lines/reorder', methods=['PUT'])
@require_tenant
@require_role(*EDITORS)
def reorder_lines(menu_id):
    """
    Body: {"lines": [{"line_id": 3, "display_order": 0, "parent_line_id": null}, ...]}
    """
    data = _payload()
    ordered = data.get('lines')
    if not isinstance(ordered, list) or not all(isinstance(e, dict) for e in ordered):
        raise BusinessLogicError('Lines array is required')
    lines = menu_line_service.reorder_lines(get_session(), g.tenant_id, menu_id, ordered)
    body = [serialize_line(l) for l in lines]
    _audit(AuditAction.REORDER, 'menu', menu_id, new_value={'lines': body})
    return jsonify({'status': 'ok', 'lines': body})


@admin_api_bp.route('/lines/<int:line_id>/move', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def move_item_line(line_id):
    data = _payload()
    _require(data, 'target_section_line_id')
    line = menu_line_service.move_item_line(
        get_session(), g.tenant_id, line_id, data['target_section_line_id']
    )
    body = serialize_line(line)
    _audit(AuditAction.MOVE, 'menu_line', line_id, new_value=body)
    return jsonify(body)


@admin_api_bp.route('/lines/<int:line_id>', methods=['DELETE'])
@require_tenant
@require_role(*EDITORS)
def delete_line(line_id):
    policy = request.args.get('policy') or current_app.config.get('MENU_LINE_DELETE_POLICY', 'cascade')
    result = menu_line_service.delete_line(get_session(), g.tenant_id, line_id, policy=policy)
    _audit(AuditAction.DELETE, 'menu_line', line_id, new_value=result)
    return jsonify(dict(result, status='ok'))


@admin_api_bp.route('/menus/<int:menu_id>/lines/<int:line_id>/toggle', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def toggle_line(menu_id, line_id):
    result = visibility_service.toggle_line(get_session(), g.tenant_id, menu_id, line_id)
    record_cascade('item' if result['scope'] == 'global' else 'section_line', result['affected'], result['skipped'])
    summary = {
        'is_enabled': result['is_enabled'],
        'affected': result['affected'],
        'skipped': result['skipped'],
        'scope': result['scope'],
    }
    _audit(AuditAction.TOGGLE, 'menu_line', line_id, new_value=summary)
    return jsonify(dict(summary, line=serialize_line(result['line'])))


# ---------------------------------------------------------------------------
# Publications
# ---------------------------------------------------------------------------

@admin_api_bp.route('/publications', methods=['GET'])
@require_tenant
def list_publications():
    publications = publication_service.list_publications(
        get_session(), g.tenant_id, location_id=_int_arg('location_id')
    )
    return jsonify({'publications': [serialize_publication(p) for p in publications]})


@admin_api_bp.route('/locations/<int:location_id>/publications', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def activate_menu(location_id):
    """Make a published menu live at the location, alongside any other live menus."""
    data = _payload()
    _require(data, 'menu_id')
    publication = publication_service.activate(get_session(), g.tenant_id, location_id, _int_field(data, 'menu_id'))
    body = serialize_publication(publication)
    _audit(AuditAction.ACTIVATE, 'publication', publication.id, new_value=body)
    return jsonify(body), 201


@admin_api_bp.route('/publications/<int:publication_id>/current', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def set_current_publication(publication_id):
    """Make this the only live menu at its location (or retire it with is_current=false)."""
    data = _payload()
    is_current = data.get('is_current', True)
    if not isinstance(is_current, bool):
        raise BusinessLogicError('is_current must be a boolean')
    publication = publication_service.set_current(get_session(), g.tenant_id, publication_id, is_current)
    body = serialize_publication(publication)
    action = AuditAction.ACTIVATE if is_current else AuditAction.DEACTIVATE
    _audit(action, 'publication', publication_id, new_value=body)
    return jsonify(body)


@admin_api_bp.route('/publications/<int:publication_id>/deactivate', methods=['POST'])
@require_tenant
@require_role(*EDITORS)
def deactivate_publication(publication_id):
    publication = publication_service.deactivate(get_session(), g.tenant_id, publication_id)
    body = serialize_publication(publication)
    _audit(AuditAction.DEACTIVATE, 'publication', publication_id, new_value=body)
    return jsonify(body)


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

@admin_api_bp.route('/audit-logs', methods=['GET'])
@require_tenant
@require_role('OWNER')
def list_audit_logs():
    limit = min(_int_arg('limit') or 100, 500)
    offset = _int_arg('offset') or 0
    action = request.args.get('action')
    try:
        action_filter = AuditAction(action) if action else None
    except ValueError:
        raise BusinessLogicError(f"Unknown audit action '{action}'")
    logs = audit_service.get_audit_logs(
        get_session(), g.tenant_id, limit=limit, offset=offset,
        action_filter=action_filter,
        entity_type_filter=request.args.get('entity_type')
    )
    return jsonify({'audit_logs': [serialize_audit_log(e) for e in logs]})
