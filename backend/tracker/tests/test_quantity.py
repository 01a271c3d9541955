"""
Tests for the quantity codec.
"""
import pytest
from pydantic import ValidationError as SchemaValidationError

from tracker.schemas.quantity import (
    DecimalQuantity, MilligramQuantity, QuantityAdapter, SizeCategoryQuantity
)
from tracker.services.quantity_service import (
    encode_quantity, format_quantity, get_quantity_config, matches_vessel,
    migrate_legacy_quantity
)


def test_encode_bowl_size_stores_scale_index():
    """Test a pipe bowl is stored as an index into the size scale."""
    quantity = encode_quantity("Pipe", "medium")
    assert isinstance(quantity, SizeCategoryQuantity)
    assert quantity.model_dump() == {"type": "size_category", "amount": 2, "unit": "bowl size"}
    assert quantity.size == "medium"
    assert format_quantity(quantity) == "medium bowl size"


def test_encode_size_is_case_insensitive():
    assert encode_quantity("Bong", " Large ").amount == 3


def test_encode_invalid_size_raises():
    with pytest.raises(ValueError):
        encode_quantity("Bong", "huge")


def test_encode_decimal_and_milligrams():
    joint = encode_quantity("Joint", 0.25)
    edible = encode_quantity("Edible", "10")
    assert isinstance(joint, DecimalQuantity)
    assert format_quantity(joint) == "0.25 joint portion"
    assert isinstance(edible, MilligramQuantity)
    assert format_quantity(edible) == "10 mg THC"


def test_unknown_vessel_falls_back_to_other():
    """Test vessels missing from the table use the Other configuration."""
    assert get_quantity_config("Hookah") == get_quantity_config("Other")
    quantity = encode_quantity("Hookah", 3)
    assert format_quantity(quantity) == "3 units"


def test_format_quantity_accepts_wire_dict():
    assert format_quantity({"amount": 0, "unit": "bowl size", "type": "size_category"}) == "tiny bowl size"
    assert format_quantity({"amount": 1.5, "unit": "dabs", "type": "decimal"}) == "1.5 dabs"


def test_discriminated_union_rejects_out_of_range_size():
    with pytest.raises(SchemaValidationError):
        QuantityAdapter.validate_python({"amount": 4, "unit": "bowl size", "type": "size_category"})


def test_matches_vessel():
    assert matches_vessel("Pipe", encode_quantity("Pipe", "small"))
    assert not matches_vessel("Pipe", encode_quantity("Joint", 0.5))
    assert matches_vessel("Mystery Device", encode_quantity("Other", 1))


def test_migrate_legacy_quantity_clamps_bowl_index():
    assert migrate_legacy_quantity("Bong", 7).size == "large"
    assert migrate_legacy_quantity("Bong", -1).size == "tiny"
    assert migrate_legacy_quantity("Joint", 0.5).amount == 0.5
