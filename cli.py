# cli.py - interactive catalog console
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from app.models import CATEGORIES
from sdk.pycatalog import CatalogClient, CatalogError

load_dotenv()

console = Console()
c = CatalogClient(
    base_url=os.getenv("CATALOG_URL", "http://127.0.0.1:3000"),
    api_key=os.getenv("API_KEY"),
)

# Global state for status messages and caching
status_message = "Ready"
product_cache: List[Dict[str, Any]] = []

custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
    'scrollbar.background': 'bg:#88aaaa',
    'scrollbar.button': 'bg:#222222',
})

category_completer = WordCompleter(CATEGORIES, ignore_case=True)


# ---------------------------
# Display helpers
# ---------------------------
def show_products(products: List[Dict[str, Any]], title: str = "📦 Products Catalog"):
    if not products:
        console.print("[italic yellow]No products found[/italic yellow]")
        return

    table = Table(
        title=title,
        box=box.ROUNDED,
        header_style="bold cyan",
        title_style="bold magenta",
        show_lines=True
    )
    table.add_column("ID", style="dim", width=12)
    table.add_column("Name", style="bold", width=20)
    table.add_column("Price", justify="right", width=10)
    table.add_column("Category", width=12)
    table.add_column("Stock", width=8)

    for p in products:
        stock = "[green]yes[/green]" if p.get("inStock") else "[red]no[/red]"
        table.add_row(
            p.get("id", "N/A")[:12],
            p.get("name", "N/A"),
            f"${p.get('price', 0):.2f}",
            p.get("category", "N/A"),
            stock,
        )
    console.print(table)


def show_page(envelope: Dict[str, Any]):
    show_products(envelope.get("data", []))
    console.print(
        f"[dim]page {envelope.get('page')}/{envelope.get('totalPages')} "
        f"- {envelope.get('total')} total[/dim]"
    )


def show_stats(stats: Dict[str, Any]):
    table = Table(title="📊 Catalog Statistics", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("Category", style="bold")
    table.add_column("Count", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Total value", justify="right")
    for row in stats.get("byCategory", []):
        table.add_row(
            row["category"],
            str(row["count"]),
            f"${row['avgPrice']:.2f}",
            f"${row['minPrice']:.2f}",
            f"${row['maxPrice']:.2f}",
            f"${row['totalValue']:.2f}",
        )
    console.print(table)
    console.print(Panel.fit(
        f"Total: [bold]{stats.get('totalProducts', 0)}[/bold]  "
        f"In stock: [green]{stats.get('inStock', 0)}[/green]  "
        f"Out of stock: [red]{stats.get('outOfStock', 0)}[/red]"
    ))


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


# ---------------------------
# API wrapper
# ---------------------------
def try_api(fn, *args, success_msg: Optional[str] = None, **kwargs):
    """
    Calls fn(*args, **kwargs) behind a spinner. API errors are shown with
    their field messages and turn into a None result.
    """
    global status_message
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            progress.add_task(description="Processing...", total=None)
            result = fn(*args, **kwargs)
    except CatalogError as e:
        status_message = f"Error: {e.message}"
        console.print(show_status(status_message, False))
        for err in e.errors:
            console.print(f"  [yellow]{err.get('field')}[/yellow]: {err.get('message')}")
        return None
    except OSError as e:
        # connection refused / timeouts from requests
        status_message = f"Error: {e}"
        console.print(show_status(status_message, False))
        return None

    if success_msg:
        status_message = success_msg
        console.print(show_status(success_msg, True))
    return result


# ---------------------------
# Autocompletion helpers
# ---------------------------
def refresh_product_cache():
    global product_cache
    envelope = try_api(c.list_products, limit=100)
    product_cache = envelope["data"] if envelope else []


def get_product_completer():
    if not product_cache:
        refresh_product_cache()
    names = [p.get("name", "") for p in product_cache]
    ids = [p.get("id", "") for p in product_cache]
    return WordCompleter([n for n in (ids + names) if n], ignore_case=True)


def prompt_with_autocomplete(message: str, completer=None, default: str = ""):
    return prompt(f"{message} ", completer=completer, style=custom_style, default=default)


def ask_float(message: str, default: float = 10.0) -> float:
    while True:
        raw = Prompt.ask(message, default=str(default))
        try:
            return float(raw)
        except ValueError:
            console.print("[red]Please enter a valid number.[/red]")


def ask_update_fields() -> Dict[str, Any]:
    """Prompt for each editable field; blank answers leave the field unchanged."""
    fields: Dict[str, Any] = {}
    name = prompt_with_autocomplete("New name (blank to keep)")
    if name:
        fields["name"] = name
    description = prompt_with_autocomplete("New description (blank to keep)")
    if description:
        fields["description"] = description
    if Confirm.ask("Change price?", default=False):
        fields["price"] = ask_float("💰 Price")
    category = prompt_with_autocomplete("New category (blank to keep)", completer=category_completer)
    if category:
        fields["category"] = category
    if Confirm.ask("Change stock status?", default=False):
        fields["in_stock"] = Confirm.ask("In stock?", default=True)
    return fields


def resolve_product_id(raw: str) -> str:
    """Accept either an id or an exact product name from the cache."""
    for p in product_cache:
        if raw in (p.get("id"), p.get("name")):
            return p["id"]
    return raw


def create_header():
    header = Table(show_header=False, box=box.ROUNDED)
    header.add_column("left", width=30)
    header.add_column("center", width=40)
    header.add_column("right", width=30)
    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    header.add_row(
        "🛍️ Catalog console",
        f"[bold blue]{c.base_url}[/bold blue]",
        f"[dim]{now}[/dim]"
    )
    return Panel(header, style="bold blue")


# ---------------------------
# Main menu
# ---------------------------
def menu():
    global status_message

    console.clear()
    console.print(create_header())
    refresh_product_cache()

    while True:
        if status_message:
            console.print(show_status(status_message, "Error" not in status_message))

        menu_table = Table.grid(padding=(0, 2))
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)
        options = [
            ("1", "📦 List products", "5", "➕ Create product"),
            ("2", "🔍 Search products", "6", "✏️ Update product"),
            ("3", "ℹ️ Get product by ID", "7", "🗑️ Delete product"),
            ("4", "📊 Statistics", "q", "👋 Quit"),
        ]
        for row in options:
            menu_table.add_row(*row)
        console.print(Panel(menu_table, title="📋 Menu", border_style="yellow"))

        choice = prompt_with_autocomplete(
            "\nChoose an option",
            completer=WordCompleter([str(i) for i in range(1, 8)] + ["q", "quit", "exit"])
        ).strip()

        if choice == "1":
            category = prompt_with_autocomplete("Category filter (comma-separated, blank for all)",
                                                completer=category_completer)
            page = IntPrompt.ask("Page", default=1)
            envelope = try_api(c.list_products, category=category or None, page=page,
                               success_msg="Products loaded")
            if envelope:
                show_page(envelope)

        elif choice == "2":
            term = prompt_with_autocomplete("Enter search term")
            res = try_api(c.search_products, term, success_msg=f"Search for '{term}' completed")
            if res is not None:
                show_products(res, title=f"🔍 Matches for '{term}'")

        elif choice == "3":
            pid = resolve_product_id(prompt_with_autocomplete("Product ID", completer=get_product_completer()))
            resp = try_api(c.get_product, pid, success_msg=f"Product {pid} loaded")
            if resp:
                show_products([resp])

        elif choice == "4":
            stats = try_api(c.stats, success_msg="Statistics loaded")
            if stats:
                show_stats(stats)

        elif choice == "5":
            name = prompt_with_autocomplete("Name")
            description = prompt_with_autocomplete("Description")
            price = ask_float("💰 Price", default=10.0)
            category = prompt_with_autocomplete("🏷️ Category", completer=category_completer, default="other")
            in_stock = Confirm.ask("In stock?", default=True)
            resp = try_api(c.create_product, name, description, price, category, in_stock,
                           success_msg=f"Product '{name}' created")
            if resp:
                show_products([resp])
                refresh_product_cache()

        elif choice == "6":
            pid = resolve_product_id(prompt_with_autocomplete("Product ID", completer=get_product_completer()))
            fields = ask_update_fields()
            resp = try_api(c.update_product, pid, success_msg=f"Product {pid} updated", **fields)
            if resp:
                show_products([resp])
                refresh_product_cache()

        elif choice == "7":
            pid = resolve_product_id(prompt_with_autocomplete("Product ID", completer=get_product_completer()))
            if Confirm.ask(f"[red]Delete {pid}?[/red]"):
                try_api(c.delete_product, pid, success_msg=f"Product {pid} deleted")
                refresh_product_cache()

        elif choice.lower() in ("q", "quit", "exit"):
            if Confirm.ask("Are you sure you want to quit?"):
                console.print(Panel.fit("[bold green]Bye! 👋[/bold green]", title="Goodbye"))
                sys.exit(0)

        console.print()
        console.rule(style="dim")


if __name__ == "__main__":
    try:
        menu()
    except KeyboardInterrupt:
        console.print("\n\n[bold red]Interrupted by user[/bold red]")
        sys.exit(1)
