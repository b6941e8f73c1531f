"""
Integration tests for structural operations on a menu's line tree.
"""

import pytest

from app.exceptions import (
    BusinessLogicError, InvalidParentError, LineNotFoundError, MenuNotEditableError, NotFoundError
)
from app.models import MenuLine
from app.services import catalog_service, menu_line_service
from app.services.menu_line_service import insert_line, reorder_lines, move_item_line, delete_line


def _orders(session, menu_id, parent_line_id=None):
    """[(line_id, display_order)] of a sibling group, in order."""
    query = session.query(MenuLine).filter(MenuLine.menu_id == menu_id)
    if parent_line_id is None:
        query = query.filter(MenuLine.parent_line_id.is_(None))
    else:
        query = query.filter(MenuLine.parent_line_id == parent_line_id)
    return [(l.id, l.display_order) for l in query.order_by(MenuLine.display_order).all()]


@pytest.fixture
def tree(session, tenant1, draft_menu, make_section, make_item):
    """Draft menu: [S1 -> (A, B), S2 -> (C)]."""
    s1 = insert_line(session, tenant1.id, draft_menu.id, 'section', make_section('Starters').id)
    s2 = insert_line(session, tenant1.id, draft_menu.id, 'section', make_section('Mains').id)
    a = insert_line(session, tenant1.id, draft_menu.id, 'item', make_item('A').id, parent_line_id=s1.id)
    b = insert_line(session, tenant1.id, draft_menu.id, 'item', make_item('B').id, parent_line_id=s1.id)
    c = insert_line(session, tenant1.id, draft_menu.id, 'item', make_item('C').id, parent_line_id=s2.id)
    return {'menu': draft_menu, 's1': s1, 's2': s2, 'a': a, 'b': b, 'c': c}


class TestInsertLine:

    def test_appends_after_max_sibling_order(self, session, tenant1, tree):
        assert _orders(session, tree['menu'].id) == [(tree['s1'].id, 0), (tree['s2'].id, 1)]
        assert _orders(session, tree['menu'].id, tree['s1'].id) == [(tree['a'].id, 0), (tree['b'].id, 1)]

    def test_new_line_is_enabled(self, tree):
        assert tree['c'].is_enabled is True

    def test_explicit_position_shifts_siblings(self, session, tenant1, tree, make_item):
        new = insert_line(
            session, tenant1.id, tree['menu'].id, 'item', make_item('D').id,
            parent_line_id=tree['s1'].id, position=0
        )
        assert _orders(session, tree['menu'].id, tree['s1'].id) == [
            (new.id, 0), (tree['a'].id, 1), (tree['b'].id, 2)
        ]

    def test_top_level_item_line(self, session, tenant1, tree, make_item):
        line = insert_line(session, tenant1.id, tree['menu'].id, 'item', make_item('Bread').id)
        assert line.parent_line_id is None
        assert line.display_order == 2

    def test_parent_must_be_section_line(self, session, tenant1, tree, make_item):
        with pytest.raises(InvalidParentError):
            insert_line(
                session, tenant1.id, tree['menu'].id, 'item', make_item('D').id,
                parent_line_id=tree['a'].id
            )

    def test_parent_must_be_in_same_menu(self, session, tenant1, tree, make_menu, make_item):
        other = make_menu('OTHER')
        with pytest.raises(InvalidParentError):
            insert_line(session, tenant1.id, other.id, 'item', make_item('D').id, parent_line_id=tree['s1'].id)

    def test_section_line_cannot_be_nested(self, session, tenant1, tree, make_section):
        with pytest.raises(InvalidParentError):
            insert_line(
                session, tenant1.id, tree['menu'].id, 'section', make_section('Desserts').id,
                parent_line_id=tree['s1'].id
            )

    def test_unknown_reference(self, session, tenant1, draft_menu):
        with pytest.raises(NotFoundError):
            insert_line(session, tenant1.id, draft_menu.id, 'item', 9999)

    def test_invalid_line_type(self, session, tenant1, draft_menu):
        with pytest.raises(BusinessLogicError):
            insert_line(session, tenant1.id, draft_menu.id, 'combo', 1)

    def test_non_integer_inputs_rejected(self, session, tenant1, tree, make_item):
        item_id = make_item('D').id
        with pytest.raises(BusinessLogicError):
            insert_line(session, tenant1.id, tree['menu'].id, 'item', item_id, position='first')
        with pytest.raises(BusinessLogicError):
            insert_line(session, tenant1.id, tree['menu'].id, 'item', 'abc')
        with pytest.raises(BusinessLogicError):
            insert_line(session, tenant1.id, tree['menu'].id, 'item', item_id, parent_line_id=[tree['s1'].id])

    def test_numeric_string_position_accepted(self, session, tenant1, tree, make_item):
        d = insert_line(
            session, tenant1.id, tree['menu'].id, 'item', make_item('D').id,
            parent_line_id=tree['s1'].id, position='1'
        )
        assert _orders(session, tree['menu'].id, tree['s1'].id) == [(tree['a'].id, 0), (d.id, 1), (tree['b'].id, 2)]

    def test_published_menu_rejects_insert(self, session, tenant1, tree, make_item):
        catalog_service.publish_menu(session, tenant1.id, tree['menu'].id)
        with pytest.raises(MenuNotEditableError):
            insert_line(session, tenant1.id, tree['menu'].id, 'item', make_item('D').id)
        assert session.query(MenuLine).filter(MenuLine.menu_id == tree['menu'].id).count() == 5


class TestReorderLines:

    def test_reorder_sections(self, session, tenant1, tree):
        """[Section1, Section2] reordered to [Section2, Section1]."""
        reorder_lines(session, tenant1.id, tree['menu'].id, [
            {'line_id': tree['s2'].id, 'display_order': 0},
            {'line_id': tree['s1'].id, 'display_order': 1},
        ])
        assert _orders(session, tree['menu'].id) == [(tree['s2'].id, 0), (tree['s1'].id, 1)]

    def test_orders_equal_supplied_index(self, session, tenant1, tree, make_item):
        d = insert_line(session, tenant1.id, tree['menu'].id, 'item', make_item('D').id, parent_line_id=tree['s1'].id)
        ordered = [tree['b'].id, d.id, tree['a'].id]
        reorder_lines(session, tenant1.id, tree['menu'].id, [{'line_id': i} for i in ordered])
        assert _orders(session, tree['menu'].id, tree['s1'].id) == [(i, n) for n, i in enumerate(ordered)]

    def test_sparse_display_orders_are_compacted(self, session, tenant1, tree):
        reorder_lines(session, tenant1.id, tree['menu'].id, [
            {'line_id': tree['s2'].id, 'display_order': 10},
            {'line_id': tree['s1'].id, 'display_order': 40},
        ])
        assert _orders(session, tree['menu'].id) == [(tree['s2'].id, 0), (tree['s1'].id, 1)]

    def test_reparent_through_reorder(self, session, tenant1, tree):
        reorder_lines(session, tenant1.id, tree['menu'].id, [
            {'line_id': tree['b'].id, 'display_order': 0, 'parent_line_id': tree['s2'].id},
        ])
        assert _orders(session, tree['menu'].id, tree['s2'].id) == [(tree['b'].id, 0), (tree['c'].id, 1)]
        assert _orders(session, tree['menu'].id, tree['s1'].id) == [(tree['a'].id, 0)]

    def test_unknown_line_fails_without_changes(self, session, tenant1, tree):
        with pytest.raises(LineNotFoundError) as exc:
            reorder_lines(session, tenant1.id, tree['menu'].id, [
                {'line_id': tree['s2'].id, 'display_order': 0},
                {'line_id': 9999, 'display_order': 1},
            ])
        assert exc.value.to_dict()['line_ids'] == [9999]
        assert _orders(session, tree['menu'].id) == [(tree['s1'].id, 0), (tree['s2'].id, 1)]

    def test_line_of_other_menu_is_not_found(self, session, tenant1, tree, make_menu, make_section):
        other = make_menu('OTHER')
        foreign = insert_line(session, tenant1.id, other.id, 'section', make_section('X').id)
        with pytest.raises(LineNotFoundError):
            reorder_lines(session, tenant1.id, tree['menu'].id, [{'line_id': foreign.id, 'display_order': 0}])

    def test_duplicate_ids_rejected(self, session, tenant1, tree):
        with pytest.raises(BusinessLogicError):
            reorder_lines(session, tenant1.id, tree['menu'].id, [
                {'line_id': tree['s1'].id}, {'line_id': tree['s1'].id}
            ])

    def test_non_integer_entries_rejected(self, session, tenant1, tree):
        for entries in (
            [{'line_id': 'abc'}],
            [{'line_id': tree['s1'].id, 'display_order': 'top'}],
            [{'line_id': tree['a'].id, 'parent_line_id': 's2'}],
            [tree['s1'].id],
        ):
            with pytest.raises(BusinessLogicError):
                reorder_lines(session, tenant1.id, tree['menu'].id, entries)
        assert _orders(session, tree['menu'].id) == [(tree['s1'].id, 0), (tree['s2'].id, 1)]

    def test_section_cannot_be_reparented(self, session, tenant1, tree):
        with pytest.raises(InvalidParentError):
            reorder_lines(session, tenant1.id, tree['menu'].id, [
                {'line_id': tree['s2'].id, 'parent_line_id': tree['s1'].id}
            ])

    def test_item_cannot_be_parent(self, session, tenant1, tree):
        with pytest.raises(InvalidParentError):
            reorder_lines(session, tenant1.id, tree['menu'].id, [
                {'line_id': tree['b'].id, 'parent_line_id': tree['a'].id}
            ])
        assert _orders(session, tree['menu'].id, tree['s1'].id) == [(tree['a'].id, 0), (tree['b'].id, 1)]

    def test_published_menu_rejects_reorder(self, session, tenant1, tree):
        catalog_service.publish_menu(session, tenant1.id, tree['menu'].id)
        with pytest.raises(MenuNotEditableError):
            reorder_lines(session, tenant1.id, tree['menu'].id, [
                {'line_id': tree['s2'].id, 'display_order': 0},
                {'line_id': tree['s1'].id, 'display_order': 1},
            ])
        assert _orders(session, tree['menu'].id) == [(tree['s1'].id, 0), (tree['s2'].id, 1)]


class TestMoveItemLine:

    def test_move_appends_and_compacts_source(self, session, tenant1, tree):
        move_item_line(session, tenant1.id, tree['a'].id, tree['s2'].id)

        assert _orders(session, tree['menu'].id, tree['s2'].id) == [(tree['c'].id, 0), (tree['a'].id, 1)]
        assert _orders(session, tree['menu'].id, tree['s1'].id) == [(tree['b'].id, 0)]

    def test_only_item_lines_move(self, session, tenant1, tree):
        with pytest.raises(BusinessLogicError):
            move_item_line(session, tenant1.id, tree['s1'].id, tree['s2'].id)

    def test_non_integer_target_rejected(self, session, tenant1, tree):
        with pytest.raises(BusinessLogicError):
            move_item_line(session, tenant1.id, tree['a'].id, 'mains')

    def test_target_must_be_section_line_of_same_menu(self, session, tenant1, tree, make_menu, make_section):
        other = make_menu('OTHER')
        foreign = insert_line(session, tenant1.id, other.id, 'section', make_section('X').id)
        with pytest.raises(InvalidParentError):
            move_item_line(session, tenant1.id, tree['a'].id, foreign.id)
        with pytest.raises(InvalidParentError):
            move_item_line(session, tenant1.id, tree['a'].id, tree['b'].id)

    def test_published_menu_rejects_move(self, session, tenant1, tree):
        catalog_service.publish_menu(session, tenant1.id, tree['menu'].id)
        with pytest.raises(MenuNotEditableError):
            move_item_line(session, tenant1.id, tree['a'].id, tree['s2'].id)


class TestDeleteLine:

    def test_cascade_removes_children(self, session, tenant1, tree):
        result = delete_line(session, tenant1.id, tree['s1'].id)

        assert result['removed_children'] == 2
        remaining = {l.id for l in session.query(MenuLine).filter(MenuLine.menu_id == tree['menu'].id)}
        assert remaining == {tree['s2'].id, tree['c'].id}
        assert _orders(session, tree['menu'].id) == [(tree['s2'].id, 0)]

    def test_reparent_moves_children_to_top_level(self, session, tenant1, tree):
        result = delete_line(session, tenant1.id, tree['s1'].id, policy='reparent')

        assert result['reparented_children'] == 2
        assert _orders(session, tree['menu'].id) == [(tree['s2'].id, 0), (tree['a'].id, 1), (tree['b'].id, 2)]

    def test_reject_keeps_section_with_children(self, session, tenant1, tree):
        with pytest.raises(BusinessLogicError):
            delete_line(session, tenant1.id, tree['s1'].id, policy='reject')
        assert session.query(MenuLine).filter(MenuLine.menu_id == tree['menu'].id).count() == 5

    def test_reject_allows_empty_section(self, session, tenant1, tree, make_section):
        empty = insert_line(session, tenant1.id, tree['menu'].id, 'section', make_section('Empty').id)
        delete_line(session, tenant1.id, empty.id, policy='reject')
        assert _orders(session, tree['menu'].id) == [(tree['s1'].id, 0), (tree['s2'].id, 1)]

    def test_delete_item_line_compacts_siblings(self, session, tenant1, tree):
        delete_line(session, tenant1.id, tree['a'].id)
        assert _orders(session, tree['menu'].id, tree['s1'].id) == [(tree['b'].id, 0)]

    def test_unknown_policy(self, session, tenant1, tree):
        with pytest.raises(BusinessLogicError):
            delete_line(session, tenant1.id, tree['s1'].id, policy='shred')

    def test_published_menu_rejects_delete(self, session, tenant1, tree):
        catalog_service.publish_menu(session, tenant1.id, tree['menu'].id)
        with pytest.raises(MenuNotEditableError):
            delete_line(session, tenant1.id, tree['a'].id)


class TestMenuTree:

    def test_tree_includes_disabled_lines_with_children(self, session, tenant1, tree):
        tree['b'].is_enabled = False
        session.commit()

        menu, lines = menu_line_service.get_menu_tree(session, tenant1.id, tree['menu'].id)

        assert [l.id for l in lines] == [tree['s1'].id, tree['s2'].id]
        assert [c.id for c in lines[0].child_lines] == [tree['a'].id, tree['b'].id]

    def test_published_menu_cannot_return_to_draft(self, session, tenant1, tree):
        catalog_service.publish_menu(session, tenant1.id, tree['menu'].id)
        with pytest.raises(BusinessLogicError):
            catalog_service.set_menu_status(session, tenant1.id, tree['menu'].id, 'draft')

    def test_publish_is_idempotent(self, session, tenant1, tree):
        first = catalog_service.publish_menu(session, tenant1.id, tree['menu'].id).published_at
        second = catalog_service.publish_menu(session, tenant1.id, tree['menu'].id).published_at
        assert first == second
