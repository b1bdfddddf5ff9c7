# app/main.py
import asyncio
import logging
import sys
from typing import Any, Dict, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from .config import Settings
from .database import connect
from .dependencies import get_service, product_body, product_patch, require_api_key
from .errors import register_error_handlers
from .log import configure_logging, install_fatal_handlers, log_requests
from .models import ProductIn
from .service import ProductService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


# ---------------------------
# Public endpoints
# ---------------------------
@router.get("")
async def list_products(request: Request, service: ProductService = Depends(get_service)):
    result = await service.list(request.query_params)
    items = result.pop("items")
    return {"success": True, "count": len(items), **result, "data": items}


@router.get("/stats")
@router.get("/statistics", include_in_schema=False)
async def product_stats(service: ProductService = Depends(get_service)):
    return {"success": True, "data": await service.stats()}


@router.get("/search")
async def search_products(q: Optional[str] = Query(None), service: ProductService = Depends(get_service)):
    result = await service.search(q)
    return {"success": True, "count": result["count"], "data": result["items"]}


@router.get("/{product_id}")
async def get_product(product_id: str, service: ProductService = Depends(get_service)):
    return {"success": True, "data": await service.get_by_id(product_id)}


# ---------------------------
# Protected endpoints
# ---------------------------
@router.post("", status_code=201, dependencies=[Depends(require_api_key)])
async def create_product(body: ProductIn = Depends(product_body),
                         service: ProductService = Depends(get_service)):
    return {"success": True, "data": await service.create(body.to_document())}


@router.put("/{product_id}", dependencies=[Depends(require_api_key)])
async def update_product(product_id: str, patch: Dict[str, Any] = Depends(product_patch),
                         service: ProductService = Depends(get_service)):
    return {"success": True, "data": await service.update(product_id, patch)}


@router.delete("/{product_id}", status_code=204, dependencies=[Depends(require_api_key)])
async def delete_product(product_id: str, service: ProductService = Depends(get_service)):
    await service.delete(product_id)
    return Response(status_code=204)


# ---------------------------
# App factory
# ---------------------------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    db = connect(settings)

    app = FastAPI(title="Product Catalog API")
    app.state.settings = settings
    app.state.db = db
    app.state.service = ProductService(db["products"], settings.max_page_size)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(log_requests)
    register_error_handlers(app)

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    async def welcome():
        return "Welcome to the Product API! Go to /api/products to see all products."

    app.include_router(router)
    return app


def run(settings: Optional[Settings] = None) -> None:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    if not settings.api_key:
        logger.warning("API_KEY is not set; create/update/delete will be rejected")

    server = uvicorn.Server(uvicorn.Config(
        create_app(settings), host=settings.host, port=settings.port,
        log_level=settings.log_level.lower(),
    ))
    failed = []

    def _shutdown() -> None:
        failed.append(True)
        server.should_exit = True

    async def _serve() -> None:
        install_fatal_handlers(_shutdown)
        logger.info("Serving on http://%s:%s (env=%s)", settings.host, settings.port, settings.environment)
        await server.serve()

    asyncio.run(_serve())
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    run()
