import pytest

from karigardesk.services.normalizer import normalize_design_code


def test_trims_and_uppercases():
    assert normalize_design_code(" ab12 ") == "AB12"


def test_empty_and_none():
    assert normalize_design_code("") == ""
    assert normalize_design_code(None) == ""


@pytest.mark.parametrize("raw", ["ab12", "  Ds-100\t", "RING 7", ""])
def test_idempotent(raw):
    once = normalize_design_code(raw)
    assert normalize_design_code(once) == once
