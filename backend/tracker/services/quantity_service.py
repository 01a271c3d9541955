"""
Quantity codec: vessel category + raw input <-> stored quantity.
"""
import logging
from typing import Any, Dict, Optional, Union

from tracker.schemas.quantity import (
    FLOWER_SIZES,
    DecimalQuantity,
    MilligramQuantity,
    Quantity,
    QuantityAdapter,
    QuantityType,
    SizeCategoryQuantity,
)

logger = logging.getLogger(__name__)

DEFAULT_VESSEL_CATEGORY = "Other"

VESSEL_CATEGORIES = [
    "Bong",
    "Joint",
    "Pipe",
    "Pen",
    "Edible",
    "Tincture",
    "Pre-roll",
    "Blunt",
    "Dab Rig",
    "Other",
]

# Each vessel category allows exactly one quantity type
VESSEL_QUANTITY_CONFIG: Dict[str, Dict[str, Any]] = {
    "Bong": {"type": QuantityType.SIZE_CATEGORY, "unit": "bowl size", "options": FLOWER_SIZES},
    "Joint": {"type": QuantityType.DECIMAL, "unit": "joint portion", "placeholder": "0.25", "step": 0.01},
    "Pipe": {"type": QuantityType.SIZE_CATEGORY, "unit": "bowl size", "options": FLOWER_SIZES},
    "Pen": {"type": QuantityType.DECIMAL, "unit": "puffs", "placeholder": "5", "step": 1},
    "Edible": {"type": QuantityType.MILLIGRAMS, "unit": "mg THC", "placeholder": "10", "step": 1},
    "Tincture": {"type": QuantityType.MILLIGRAMS, "unit": "mg THC", "placeholder": "5", "step": 1},
    "Pre-roll": {"type": QuantityType.DECIMAL, "unit": "joint portion", "placeholder": "0.5", "step": 0.1},
    "Blunt": {"type": QuantityType.DECIMAL, "unit": "blunt portion", "placeholder": "0.25", "step": 0.01},
    "Dab Rig": {"type": QuantityType.DECIMAL, "unit": "dabs", "placeholder": "1", "step": 0.5},
    "Other": {"type": QuantityType.DECIMAL, "unit": "units", "placeholder": "1", "step": 0.1},
}


def get_quantity_config(vessel_category: Optional[str]) -> Dict[str, Any]:
    """Configuration for a vessel category; unknown categories get ``Other``."""
    return VESSEL_QUANTITY_CONFIG.get(vessel_category or "", VESSEL_QUANTITY_CONFIG[DEFAULT_VESSEL_CATEGORY])


def encode_quantity(vessel_category: Optional[str], raw_value: Union[int, float, str]) -> Quantity:
    """
    Convert form input into a stored quantity.
    
    Size-category vessels take one of ``FLOWER_SIZES``; the index is stored.
    Other vessels take a number, stored unchanged.
    
    Raises:
        ValueError: if the raw value does not fit the vessel's quantity type
    """
    config = get_quantity_config(vessel_category)
    unit = config["unit"]
    
    if config["type"] == QuantityType.SIZE_CATEGORY:
        size = str(raw_value).strip().lower()
        if size not in FLOWER_SIZES:
            raise ValueError(f"Size must be one of {', '.join(FLOWER_SIZES)}, got {raw_value!r}")
        return SizeCategoryQuantity(amount=FLOWER_SIZES.index(size), unit=unit)
    
    amount = float(raw_value)
    if config["type"] == QuantityType.MILLIGRAMS:
        return MilligramQuantity(amount=amount, unit=unit)
    return DecimalQuantity(amount=amount, unit=unit)


def format_quantity(quantity: Union[Quantity, Dict[str, Any]]) -> str:
    """Display string for a stored quantity, e.g. ``"medium bowl size"``."""
    if isinstance(quantity, dict):
        quantity = QuantityAdapter.validate_python(quantity)
    return quantity.display()


def matches_vessel(vessel_category: Optional[str], quantity: Quantity) -> bool:
    """Check the quantity type is the one configured for the vessel category."""
    return get_quantity_config(vessel_category)["type"].value == quantity.type


def migrate_legacy_quantity(vessel_category: Optional[str], legacy_quantity: float) -> Quantity:
    """Turn a pre-union numeric quantity into a typed one."""
    config = get_quantity_config(vessel_category)
    if config["type"] == QuantityType.SIZE_CATEGORY:
        # Legacy bowls were recorded as a 0-3 index already
        index = min(max(int(round(legacy_quantity)), 0), len(FLOWER_SIZES) - 1)
        return SizeCategoryQuantity(amount=index, unit=config["unit"])
    return encode_quantity(vessel_category, legacy_quantity)
