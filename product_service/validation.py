# product_service/validation.py

"""
Field rules for Product payloads.

`validate_product` checks every rule and returns all violations at once so a
client can fix a form in a single round trip.
"""
import math
from numbers import Number
from typing import Any, Dict, List, Mapping, Optional, Tuple

REQUIRED_FIELDS = ("product_name", "price_new", "brand", "category")

# field name, label used in messages, max length, required
TEXT_FIELD_RULES = (
    ("product_name", "Product name", 200, True),
    ("brand", "Brand", 100, True),
    ("category", "Category", 100, True),
)

OPTIONAL_TEXT_FIELDS = (
    ("description", "Description", 1000),
    ("image_url", "Image URL", None),
    ("video_url", "Video URL", None),
)


def _is_blank(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, Number):
        return value == 0 or (isinstance(value, float) and math.isnan(value))
    return False


def missing_required_fields(payload: Mapping[str, Any]) -> List[str]:
    """Names of required fields that are absent, empty or zero."""
    return [name for name in REQUIRED_FIELDS if _is_blank(payload.get(name))]


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return ""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, Number):
        return str(value)
    return None


def coerce_price(value: Any) -> Tuple[Optional[float], Optional[str]]:
    """
    Convert a submitted price to a float.
    Returns (price, None) on success or (None, violation) on failure.
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None, "Price is required"
    if isinstance(value, bool):
        return None, "Price must be a valid number"
    if isinstance(value, Number):
        price = float(value)
    elif isinstance(value, str):
        try:
            price = float(value.strip())
        except ValueError:
            return None, "Price must be a valid number"
    else:
        return None, "Price must be a valid number"

    if not math.isfinite(price):
        return None, "Price must be a valid number"
    if price < 0:
        return None, "Price cannot be negative"
    return price, None


def validate_product(payload: Mapping[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """
    Normalise a full Product payload.

    Returns the cleaned writable fields and the list of violated rules.
    Optional fields that are omitted come back as empty strings.
    """
    fields: Dict[str, Any] = {}
    violations: List[str] = []

    for name, label, max_length, required in TEXT_FIELD_RULES:
        text = _as_text(payload.get(name))
        if text is None:
            violations.append(f"{label} must be text")
            continue
        text = text.strip()
        if required and not text:
            violations.append(f"{label} is required")
        elif len(text) > max_length:
            violations.append(f"{label} cannot exceed {max_length} characters")
        fields[name] = text

        if name == "product_name":
            # Keep messages in column order: name, price, brand, category
            price, error = coerce_price(payload.get("price_new"))
            if error:
                violations.append(error)
            fields["price_new"] = price

    for name, label, max_length in OPTIONAL_TEXT_FIELDS:
        text = _as_text(payload.get(name))
        if text is None:
            violations.append(f"{label} must be text")
            continue
        if name != "description":
            text = text.strip()
        if max_length is not None and len(text) > max_length:
            violations.append(f"{label} cannot exceed {max_length} characters")
        fields[name] = text

    return fields, violations
