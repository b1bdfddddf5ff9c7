# sdk/pycatalog.py
from typing import Any, Dict, List, Optional

import httpx
import requests


class CatalogError(Exception):
    def __init__(self, status_code: int, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        self.status_code = status_code
        self.message = message
        self.errors = errors or []
        super().__init__(f"HTTP {status_code}: {message}")


def _check(r) -> Any:
    """Return the decoded envelope, or raise CatalogError for non-2xx replies."""
    if r.status_code == 204:
        return None
    try:
        body = r.json()
    except ValueError:
        body = {"message": r.text}
    if r.status_code >= 400:
        raise CatalogError(r.status_code, body.get("message") or "request failed", body.get("errors"))
    return body


class CatalogClient:
    def __init__(self, base_url: str = "http://localhost:3000", api_key: Optional[str] = None, timeout: int = 10,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.timeout = timeout
        # used by the async calls only
        self.transport = transport
        if api_key:
            self.session.headers.update({"X-API-Key": api_key})

    def _url(self, path: str = "") -> str:
        return f"{self.base_url}/api/products{path}"

    # Reads
    def list_products(self, **filters) -> Dict[str, Any]:
        """
        Filters: name, category (str or list), in_stock, min_price, max_price,
        search, page, limit, sort. Returns the whole envelope so callers can
        page through with hasNextPage.
        """
        r = self.session.get(self._url(), params=_list_params(filters), timeout=self.timeout)
        return _check(r)

    def get_product(self, product_id: str) -> Dict[str, Any]:
        r = self.session.get(self._url(f"/{product_id}"), timeout=self.timeout)
        return _check(r)["data"]

    def search_products(self, q: str) -> List[Dict[str, Any]]:
        r = self.session.get(self._url("/search"), params={"q": q}, timeout=self.timeout)
        return _check(r)["data"]

    def stats(self) -> Dict[str, Any]:
        r = self.session.get(self._url("/stats"), timeout=self.timeout)
        return _check(r)["data"]

    # Writes (need api_key)
    def create_product(self, name: str, description: str, price: float, category: str,
                       in_stock: Optional[bool] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": name, "description": description, "price": price, "category": category,
        }
        if in_stock is not None:
            payload["inStock"] = in_stock
        r = self.session.post(self._url(), json=payload, timeout=self.timeout)
        return _check(r)["data"]

    def update_product(self, product_id: str, **fields) -> Dict[str, Any]:
        if "in_stock" in fields:
            fields["inStock"] = fields.pop("in_stock")
        r = self.session.put(self._url(f"/{product_id}"), json=fields, timeout=self.timeout)
        return _check(r)["data"]

    def delete_product(self, product_id: str) -> None:
        r = self.session.delete(self._url(f"/{product_id}"), timeout=self.timeout)
        _check(r)

    # Async list (example)
    async def list_products_async(self, **filters) -> Dict[str, Any]:
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            r = await client.get(self._url(), params=_list_params(filters))
            return _check(r)


def _list_params(filters: Dict[str, Any]) -> Dict[str, str]:
    names = {"in_stock": "inStock", "min_price": "minPrice", "max_price": "maxPrice"}
    params = {}
    for key, value in filters.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            value = ",".join(value)
        params[names.get(key, key)] = str(value)
    return params


def build_parser():
    import argparse
    import os

    parser = argparse.ArgumentParser(description="Product catalog client")
    parser.add_argument("--base-url", default=os.getenv("CATALOG_URL", "http://127.0.0.1:3000"))
    parser.add_argument("--api-key", default=os.getenv("API_KEY"))
    subparsers = parser.add_subparsers(dest="command", required=True)

    lp = subparsers.add_parser("list", help="List products")
    lp.add_argument("--name")
    lp.add_argument("--category", help="Comma-separated categories")
    lp.add_argument("--in-stock", choices=["true", "false"])
    lp.add_argument("--min-price", type=float)
    lp.add_argument("--max-price", type=float)
    lp.add_argument("--page", type=int)
    lp.add_argument("--limit", type=int)
    lp.add_argument("--sort")

    sp = subparsers.add_parser("search", help="Search name and description")
    sp.add_argument("q")

    gp = subparsers.add_parser("get", help="Get a product by its ID")
    gp.add_argument("product_id")

    subparsers.add_parser("stats", help="Per-category statistics")

    cp = subparsers.add_parser("create", help="Create a product")
    cp.add_argument("--name", required=True)
    cp.add_argument("--description", required=True)
    cp.add_argument("--price", type=float, required=True)
    cp.add_argument("--category", required=True)
    cp.add_argument("--out-of-stock", action="store_true")

    up = subparsers.add_parser("update", help="Change some fields of a product")
    up.add_argument("product_id")
    up.add_argument("--name")
    up.add_argument("--description")
    up.add_argument("--price", type=float)
    up.add_argument("--category")
    up.add_argument("--in-stock", choices=["true", "false"])

    dp = subparsers.add_parser("delete", help="Delete a product")
    dp.add_argument("product_id")
    return parser


def update_fields(args) -> Dict[str, Any]:
    """Fields given on the `update` command line, ready for update_product()."""
    fields: Dict[str, Any] = {}
    for key in ("name", "description", "price", "category"):
        if getattr(args, key) is not None:
            fields[key] = getattr(args, key)
    if args.in_stock is not None:
        fields["in_stock"] = args.in_stock == "true"
    return fields


def main(argv: Optional[List[str]] = None) -> None:
    from rich import print

    args = build_parser().parse_args(argv)
    c = CatalogClient(base_url=args.base_url, api_key=args.api_key)

    try:
        if args.command == "list":
            print(c.list_products(name=args.name, category=args.category, in_stock=args.in_stock,
                                  min_price=args.min_price, max_price=args.max_price,
                                  page=args.page, limit=args.limit, sort=args.sort))
        elif args.command == "search":
            print(c.search_products(args.q))
        elif args.command == "get":
            print(c.get_product(args.product_id))
        elif args.command == "stats":
            print(c.stats())
        elif args.command == "create":
            print(c.create_product(args.name, args.description, args.price, args.category,
                                   in_stock=False if args.out_of_stock else None))
        elif args.command == "update":
            print(c.update_product(args.product_id, **update_fields(args)))
        elif args.command == "delete":
            c.delete_product(args.product_id)
            print(f"[green]Deleted {args.product_id}[/green]")
    except CatalogError as e:
        print(f"[red]{e}[/red]")
        for err in e.errors:
            print(f"  [yellow]{err.get('field')}[/yellow]: {err.get('message')}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
