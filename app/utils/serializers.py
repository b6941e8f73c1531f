"""JSON-ready dict representations of catalog entities for the admin API."""


def _iso(value):
    return value.isoformat() if value is not None else None


def _price(value):
    return "%.2f" % value if value is not None else None


def serialize_translations(translations, text_field):
    return [
        {'locale': t.locale, text_field: getattr(t, text_field), 'description': t.description}
        for t in translations
    ]


def serialize_section(section):
    return {
        'id': section.id,
        'is_active': section.is_active,
        'translations': serialize_translations(section.translations, 'title'),
    }


def serialize_item(item):
    return {
        'id': item.id,
        'is_visible': item.is_visible,
        'price': _price(item.price),
        'currency': item.currency,
        'translations': serialize_translations(item.translations, 'name'),
        'allergen_ids': sorted(a.id for a in item.allergens),
        'dietary_flag_ids': sorted(f.id for f in item.dietary_flags),
        'ingredient_ids': sorted(i.id for i in item.ingredients),
    }


def serialize_location(location):
    return {
        'id': location.id,
        'name': location.name,
        'slug': location.slug,
        'city': location.city,
        'is_active': location.is_active,
    }


def serialize_menu(menu):
    return {
        'id': menu.id,
        'code': menu.code,
        'status': menu.status.value,
        'currency': menu.currency,
        'published_at': _iso(menu.published_at),
        'translations': serialize_translations(menu.translations, 'name'),
    }


def serialize_menu_section(row):
    return dict(serialize_section(row.section), display_order=row.display_order, menu_id=row.menu_id)


def serialize_line(line):
    return {
        'id': line.id,
        'menu_id': line.menu_id,
        'line_type': line.line_type.value,
        'section_id': line.section_id,
        'item_id': line.item_id,
        'parent_line_id': line.parent_line_id,
        'display_order': line.display_order,
        'is_enabled': line.is_enabled,
    }


def serialize_tree(menu, top_level_lines):
    """Admin tree: every line, enabled or not, with children nested under section lines."""
    lines = []
    for line in top_level_lines:
        node = serialize_line(line)
        if line.is_section:
            node['children'] = [serialize_line(child) for child in line.child_lines]
        lines.append(node)
    return {'menu': serialize_menu(menu), 'lines': lines}


def serialize_publication(publication):
    return {
        'id': publication.id,
        'location_id': publication.location_id,
        'menu_id': publication.menu_id,
        'is_current': publication.is_current,
        'goes_live_at': _iso(publication.goes_live_at),
        'retires_at': _iso(publication.retires_at),
    }


def serialize_audit_log(entry):
    return {
        'id': entry.id,
        'user_id': entry.user_id,
        'action': entry.action.value,
        'entity_type': entry.entity_type,
        'entity_id': entry.entity_id,
        'old_values': entry.old_values,
        'new_values': entry.new_values,
        'created_at': _iso(entry.created_at),
    }
