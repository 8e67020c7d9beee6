import pytest

from kitchen_quoter.errors import InvalidQuantity, ItemNotFound
from kitchen_quoter.items import (
    add_item,
    add_manual_item,
    items_subtotal,
    remove_item,
    set_allowance,
    update_item_notes,
    update_quantity,
)
from kitchen_quoter.models.catalog import PriceUnit, Product

BASE_UNIT = Product(id="prod-bu-600", name="Base Unit 600mm", sku="BU-600", base_price=150.0)
WORKTOP = Product(
    id="prod-wt-lam",
    name="Laminate Worktop 40mm",
    sku="WT-LAM",
    base_price=45.0,
    price_unit=PriceUnit.linear_meter,
)


def test_add_item_snapshots_catalog_fields():
    items = add_item([], BASE_UNIT, 2)

    assert len(items) == 1
    item = items[0]
    assert item.product_id == "prod-bu-600"
    assert item.product_name == "Base Unit 600mm"
    assert item.product_sku == "BU-600"
    assert item.unit_price == 150.0
    assert item.base_price == 150.0
    assert item.line_total == 300.0
    assert item.sort_order == 0


def test_same_product_and_allowance_combines():
    items = add_item([], BASE_UNIT, 1)
    items = add_item(items, BASE_UNIT, 1)

    assert len(items) == 1
    assert items[0].quantity == 2
    assert items[0].line_total == 300.0


def test_same_product_different_allowance_gets_own_row():
    items = add_item([], BASE_UNIT, 1)
    items = add_item(items, BASE_UNIT, 1, is_in_allowance=True)

    assert len(items) == 2
    assert items[1].unit_price == 0.0
    assert items[1].base_price == 150.0
    assert items[1].line_total == 0.0


def test_add_item_does_not_mutate_input():
    original = add_item([], BASE_UNIT, 1)
    add_item(original, BASE_UNIT, 3)
    assert original[0].quantity == 1


@pytest.mark.parametrize("quantity", [0, -1, -0.5])
def test_add_item_rejects_non_positive_quantity(quantity):
    with pytest.raises(InvalidQuantity):
        add_item([], BASE_UNIT, quantity)


def test_manual_items_never_combine():
    items = add_manual_item([], name="Plinth cut", unit_price=12.5, quantity=2)
    items = add_manual_item(items, name="Plinth cut", unit_price=12.5, quantity=2)

    assert len(items) == 2
    assert all(item.product_id is None for item in items)
    assert [item.sort_order for item in items] == [0, 1]


def test_manual_item_rejects_zero_quantity():
    with pytest.raises(InvalidQuantity):
        add_manual_item([], name="Plinth cut", unit_price=12.5, quantity=0)


def test_update_quantity_uses_current_unit_price():
    items = add_item([], WORKTOP, 2.4)
    items = update_quantity(items, items[0].id, 3.6)

    assert items[0].quantity == 3.6
    assert items[0].line_total == pytest.approx(162.0)


def test_update_quantity_on_allowance_item_stays_zero():
    items = add_item([], BASE_UNIT, 1, is_in_allowance=True)
    items = update_quantity(items, items[0].id, 4)
    assert items[0].line_total == 0.0


def test_update_quantity_rejects_non_positive():
    items = add_item([], BASE_UNIT, 1)
    with pytest.raises(InvalidQuantity):
        update_quantity(items, items[0].id, 0)
    assert items[0].quantity == 1


def test_allowance_toggle_is_reversible():
    items = add_item([], BASE_UNIT, 2)
    item_id = items[0].id

    for _ in range(5):
        items = set_allowance(items, item_id, True)
        assert items[0].unit_price == 0.0
        assert items[0].line_total == 0.0
        assert items[0].base_price == 150.0

        items = set_allowance(items, item_id, False)
        assert items[0].unit_price == 150.0
        assert items[0].line_total == 300.0


def test_setting_allowance_twice_is_idempotent():
    items = add_item([], BASE_UNIT, 2)
    once = set_allowance(items, items[0].id, True)
    twice = set_allowance(once, items[0].id, True)
    assert once == twice


def test_remove_item_keeps_sort_positions():
    items = add_item([], BASE_UNIT, 1)
    items = add_item(items, WORKTOP, 3)
    items = add_manual_item(items, name="Cornice", unit_price=8.0, quantity=4)

    items = remove_item(items, items[1].id)

    assert [item.sort_order for item in items] == [0, 2]
    assert add_manual_item(items, name="Pelmet", unit_price=8.0, quantity=1)[-1].sort_order == 3


def test_unknown_item_id_raises():
    with pytest.raises(ItemNotFound):
        remove_item([], "item_missing")
    with pytest.raises(ItemNotFound):
        set_allowance([], "item_missing", True)


def test_notes_update():
    items = add_item([], BASE_UNIT, 1)
    items = update_item_notes(items, items[0].id, "Left hand hinge")
    assert items[0].notes == "Left hand hinge"
    assert update_item_notes(items, items[0].id, "")[0].notes is None


def test_subtotal_equals_sum_of_line_totals():
    items = add_item([], BASE_UNIT, 2)
    items = add_item(items, WORKTOP, 3.2)
    items = add_item(items, BASE_UNIT, 1, is_in_allowance=True)
    items = update_quantity(items, items[1].id, 4.1)
    items = set_allowance(items, items[0].id, True)
    items = set_allowance(items, items[0].id, False)
    items = remove_item(items, items[2].id)

    assert items_subtotal(items) == pytest.approx(sum(item.line_total for item in items))
