from conftest import make_order
from karigardesk.models.design import DesignMappingRead
from karigardesk.services.mapping import enrich_order, enrich_orders, group_unmapped, index_mappings, resolve_design


def _mapping(code, generic="Ring", karigar="Ramesh"):
    return DesignMappingRead(design_code=code, generic_name=generic, karigar_name=karigar)


def test_resolve_normalizes_lookup_key():
    indexed = index_mappings([_mapping("AB12")])
    assert resolve_design(" ab12 ", indexed).karigar_name == "Ramesh"
    assert resolve_design("CD1", indexed) is None


def test_order_values_win_over_mapping():
    indexed = index_mappings([_mapping("DS100", generic="Ring", karigar="Ramesh")])
    order = make_order(karigar_name="Mahesh")

    enriched = enrich_order(order, indexed)

    assert enriched.karigar_name == "Mahesh"
    assert enriched.generic_name == "Ring"
    assert order.generic_name is None


def test_blank_order_names_are_filled():
    indexed = index_mappings([_mapping("DS100")])
    enriched = enrich_order(make_order(generic_name="  ", karigar_name=""), indexed)
    assert (enriched.generic_name, enriched.karigar_name) == ("Ring", "Ramesh")


def test_unmapped_grouping():
    orders = [
        make_order("A1-1-0", design="A"),
        make_order("A2-1-0", design="A"),
        make_order("B1-1-0", design="B", generic_name="Chain"),
        make_order("C1-1-0", design="C"),
    ]
    groups = group_unmapped(enrich_orders(orders, [_mapping("C")]))

    assert [g.design_code for g in groups] == ["A", "B"]
    a, b = groups
    assert a.order_count == 2
    assert a.order_nos == ["A1", "A2"]
    assert a.missing_generic_name is True
    assert a.missing_karigar_name is True
    assert b.missing_generic_name is False
    assert b.missing_karigar_name is True


def test_unmapped_group_with_karigar_already_known():
    orders = [
        make_order("A1-1-0", design="A", karigar_name="K"),
        make_order("A2-1-0", design="A", karigar_name="K"),
    ]
    groups = group_unmapped(enrich_orders(orders, []))

    assert len(groups) == 1
    group = groups[0]
    assert group.design_code == "A"
    assert group.order_count == 2
    assert group.missing_generic_name is True
    assert group.missing_karigar_name is False
