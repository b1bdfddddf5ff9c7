# app/dependencies.py
from typing import Any, Dict, Optional

from fastapi import Body, Header, Query, Request

from .errors import Forbidden, Unauthorized
from .models import ProductIn
from .service import ProductService
from .validation import validate_partial, validate_product


def get_service(request: Request) -> ProductService:
    return request.app.state.service


# ---------------------------
# Auth gate (mutating routes)
# ---------------------------
async def require_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(None),
    api_key_param: Optional[str] = Query(None, alias="apiKey"),
) -> None:
    credential = x_api_key if x_api_key is not None else api_key_param
    if not credential:
        raise Unauthorized("API key is required")
    expected = request.app.state.settings.api_key
    if expected is None or credential != expected:
        raise Forbidden("Invalid API key")


# ---------------------------
# Request validator (create/update bodies)
# ---------------------------
async def product_body(payload: Dict[str, Any] = Body(...)) -> ProductIn:
    return validate_product(payload)


async def product_patch(payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    return validate_partial(payload)
