"""Public read-only menu API for guests (no authentication)."""
from flask import Blueprint, request, jsonify
import logging

from app.blueprints.metrics import public_menu_renders_total
from app.database import get_session
from app.services.menu_render_service import render_location_menu

logger = logging.getLogger(__name__)

public_api_bp = Blueprint('public_api', __name__, url_prefix='/api/t')


@public_api_bp.route('/<tenant_slug>/l/<location_slug>/menu', methods=['GET'])
def location_menu(tenant_slug, location_slug):
    """
    Menus currently live at a location.

    Query params:
        locale: preferred locale (falls back to the tenant default, then any)
    """
    result = render_location_menu(get_session(), tenant_slug, location_slug, request.args.get('locale'))
    public_menu_renders_total.inc()
    return jsonify(result)
