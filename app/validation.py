# app/validation.py
"""
Product invariant checks shared by the request validator and the service.

Both layers call validate_product(); pydantic collects every field error in
one pass, and the errors are translated here into `{field, message}` entries.
"""
from typing import Any, Dict, List, Mapping

from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import DESCRIPTION_MAX_LENGTH, NAME_MAX_LENGTH, ProductIn

_REQUIRED = ("missing", "string_too_short", "category_required")

_MESSAGES: Dict[str, Dict[str, str]] = {
    "name": {
        **{t: "Name is required" for t in _REQUIRED},
        "string_type": "Name must be a string",
        "string_too_long": f"Name cannot be more than {NAME_MAX_LENGTH} characters",
    },
    "description": {
        **{t: "Description is required" for t in _REQUIRED},
        "string_type": "Description must be a string",
        "string_too_long": f"Description cannot be more than {DESCRIPTION_MAX_LENGTH} characters",
    },
    "price": {
        "missing": "Price is required",
        "float_type": "Price must be a number",
        "float_parsing": "Price must be a number",
        "finite_number": "Price must be a number",
        "greater_than_equal": "Price must be a positive number",
    },
    "category": {
        **{t: "Category is required" for t in _REQUIRED},
        "enum": "{input} is not a valid category",
    },
    "inStock": {
        "bool_type": "inStock must be a boolean",
        "bool_parsing": "inStock must be a boolean",
    },
}


def _field_errors(exc: PydanticValidationError) -> List[Dict[str, Any]]:
    out = []
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "body"
        template = _MESSAGES.get(field, {}).get(err["type"])
        message = template.format(input=err.get("input")) if template else err["msg"]
        out.append({"field": field, "message": message})
    return out


def validate_product(payload: Mapping[str, Any]) -> ProductIn:
    """Validate a full product; raise ValidationError listing every bad field."""
    try:
        return ProductIn.model_validate(dict(payload))
    except PydanticValidationError as exc:
        raise ValidationError("Validation failed", _field_errors(exc)) from exc


def validate_partial(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate only the fields present in an update body.

    Returns the body unchanged; the merged record is re-validated by the
    service before it is persisted.
    """
    try:
        ProductIn.model_validate(dict(payload))
    except PydanticValidationError as exc:
        errors = [e for e in _field_errors(exc) if e["field"] in payload]
        if errors:
            raise ValidationError("Validation failed", errors) from exc
    return dict(payload)
