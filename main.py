#!/usr/bin/env python3
"""
Catalog Sync - Main Entry Point

Browses the product catalog stored in Supabase, follows realtime changes,
and runs the few admin operations that have a command-line form.

Usage:
    python main.py --products                 # First page of products
    python main.py --products --search شاي    # Products whose name contains "شاي"
    python main.py --watch                    # Live view, patched by realtime events
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.settings import config
from catalog.client import CatalogClient
from catalog.errors import MutationError
from catalog.sync.catalog_view import CatalogView, ViewStatus
from catalog.sync.reconciler import LoadOptions

console = Console()

STATUS_MESSAGES = {
    ViewStatus.OFFLINE: "أنت غير متصل بالإنترنت حاليًا. عد للاتصال وحاول مرة أخرى.",
    ViewStatus.EMPTY: "لا توجد منتجات متاحة حاليًا.",
    ViewStatus.LOADING: "جارٍ التحميل...",
}


class CustomHelpFormatter(argparse.RawDescriptionHelpFormatter):
    """Custom formatter that preserves formatting and adds width."""

    def __init__(self, prog):
        super().__init__(prog, max_help_position=40, width=100)


def parse_args(argv=None):
    """Parse command line arguments."""

    epilog = """
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
EXAMPLES
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
  Browsing:
    python main.py --products                  First page of products
    python main.py --products --pages 3        First three pages
    python main.py --products --new-only       New arrivals (last 14 days)
    python main.py --products --category ID    One category
    python main.py --products --search شاي     Name search
    python main.py --categories                All categories
    python main.py --stats                     Catalog statistics
    python main.py --show ID                   One product

  Live:
    python main.py --watch                     Follow realtime changes (Ctrl-C to stop)

  Admin (requires SUPABASE_SERVICE_ROLE_KEY):
    python main.py --create-category "مشروبات" --image drinks.png
    python main.py --delete-category ID
    python main.py --users
    python main.py --set-role USER_ID wholesale
"""

    parser = argparse.ArgumentParser(
        description="""
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
                            CATALOG SYNC CLIENT
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
Reads products and categories from Supabase and keeps a paginated,
searchable product list in sync with realtime changes.
""",
        epilog=epilog,
        formatter_class=CustomHelpFormatter,
    )

    browse_group = parser.add_argument_group("Browsing Options", "What to list")

    browse_group.add_argument(
        "--products", "-p", action="store_true", help="List products"
    )
    browse_group.add_argument(
        "--categories", action="store_true", help="List categories"
    )
    browse_group.add_argument(
        "--stats", action="store_true", help="Show catalog statistics"
    )
    browse_group.add_argument(
        "--show", type=str, metavar="ID", help="Show one product"
    )
    browse_group.add_argument(
        "--category", "-c", type=str, metavar="ID", help="Only products of this category"
    )
    browse_group.add_argument(
        "--new-only", action="store_true", help="Only products flagged as new"
    )
    browse_group.add_argument(
        "--limit", "-n", type=int, metavar="NUM", help="Maximum number of products"
    )
    browse_group.add_argument(
        "--search", "-s", type=str, metavar="QUERY", help="Filter products by name"
    )
    browse_group.add_argument(
        "--pages",
        type=int,
        default=1,
        metavar="NUM",
        help="Pages to show (default: 1)",
    )

    live_group = parser.add_argument_group("Live Options", "Realtime sync")

    live_group.add_argument(
        "--watch", "-w", action="store_true", help="Follow realtime product changes"
    )

    admin_group = parser.add_argument_group("Admin Options", "Category and user management")

    admin_group.add_argument(
        "--create-category", type=str, metavar="NAME", help="Create a category"
    )
    admin_group.add_argument(
        "--description", type=str, metavar="TEXT", help="Description for --create-category"
    )
    admin_group.add_argument(
        "--image", type=Path, metavar="FILE", help="Image for --create-category"
    )
    admin_group.add_argument(
        "--delete-category", type=str, metavar="ID", help="Delete a category and its image"
    )
    admin_group.add_argument(
        "--users", action="store_true", help="List non-admin users and their roles"
    )
    admin_group.add_argument(
        "--set-role",
        nargs=2,
        metavar=("USER_ID", "ROLE"),
        help="Set a user role (customer, wholesale, preparation, full_details)",
    )

    return parser.parse_args(argv)


def load_options(args) -> LoadOptions:
    """Create view load options from arguments."""
    return LoadOptions(
        category_id=args.category,
        new_only=args.new_only,
        limit=args.limit,
    )


async def render_view(client: CatalogClient, view: CatalogView, title: str) -> None:
    """Print the view's current state the way the product grid renders it."""
    status = view.status
    if status in STATUS_MESSAGES:
        console.print(f"[yellow]{STATUS_MESSAGES[status]}[/yellow]")
        return
    if status == ViewStatus.NO_MATCHES:
        console.print(f'[yellow]لم يتم العثور على منتجات تطابق "{view.query}"[/yellow]')
        return

    state = view.state
    console.print(await client.products_table(state.visible, title=title))
    console.print(
        f"[dim]Showing {len(state.visible)} of {len(state.filtered)} "
        f"(page {state.page}{', more available' if state.has_more else ''})[/dim]"
    )


async def list_products(client: CatalogClient, args) -> int:
    view = client.new_view(load_options(args))
    await view.mount()
    try:
        if args.search:
            view.search_now(args.search)
        for _ in range(max(1, args.pages) - 1):
            if not view.append_page():
                break
        await render_view(client, view, "Products")
    finally:
        await view.unmount()
    return 0


async def list_categories(client: CatalogClient) -> int:
    categories = await client.loader.load_categories()
    if categories is None:
        console.print("[yellow]Categories are unavailable right now.[/yellow]")
        return 1

    table = Table(title="Categories", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Slug")
    table.add_column("Color")
    for category in categories:
        table.add_row(category.id, category.name, category.slug, category.color or "-")
    console.print(table)
    return 0


async def show_product(client: CatalogClient, product_id: str) -> int:
    product = await client.loader.load_product(product_id)
    if product is None:
        console.print(f"[red]Product not found: {product_id}[/red]")
        return 1
    console.print(await client.products_table([product], title=product.name or product.id))
    return 0


async def show_stats(client: CatalogClient) -> int:
    products = await client.loader.load_products()
    categories = await client.loader.load_categories()
    if products is None or categories is None:
        console.print("[yellow]Statistics are unavailable right now.[/yellow]")
        return 1

    names = {c.id: c.name for c in categories}
    by_category: dict = {}
    for product in products:
        key = names.get(product.category_id, "Uncategorized")
        by_category[key] = by_category.get(key, 0) + 1

    new_count = len(
        [p for p in products if p.is_new and (p.age_in_days() or 0) <= client.config.catalog.new_product_days]
    )

    table = Table(title="Catalog Statistics", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Products", str(len(products)))
    table.add_row("Categories", str(len(categories)))
    table.add_row("New products", str(new_count))
    for name, count in sorted(by_category.items(), key=lambda kv: -kv[1]):
        table.add_row(f"  {name}", str(count))
    console.print(table)
    return 0


async def watch(client: CatalogClient, args) -> int:
    view = client.new_view(load_options(args))
    await view.mount()
    client.connectivity.start(client.config.connectivity.poll_interval_seconds)
    if args.search:
        view.search_now(args.search)

    console.print(
        Panel(
            "[bold white]Watching product changes[/bold white]\n"
            "[dim]Inserts reload the list, updates and deletes patch it in place.[/dim]",
            title="🔄 Live catalog",
            border_style="blue",
        )
    )
    last_state, last_status = None, None
    try:
        while True:
            if view.state is not last_state or view.status != last_status:
                last_state, last_status = view.state, view.status
                await render_view(client, view, "Products (live)")
            await asyncio.sleep(1.0)
    finally:
        await view.unmount()


async def create_category(client: CatalogClient, args) -> int:
    category = await client.categories.create_category(
        args.create_category, description=args.description, image=args.image
    )
    console.print(f"[green]✓ {category.name} → {category.slug} ({category.color})[/green]")
    return 0


async def delete_category(client: CatalogClient, category_id: str) -> int:
    categories = await client.loader.load_categories() or []
    category = next((c for c in categories if c.id == category_id), None)
    if category is None:
        console.print(f"[red]Category not found: {category_id}[/red]")
        return 1
    await client.categories.delete_category(category)
    return 0


async def list_users(client: CatalogClient) -> int:
    users = await client.profiles.list_users()

    table = Table(title="Users", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Email", style="cyan")
    table.add_column("Name")
    table.add_column("Role", style="green")
    for user in users:
        table.add_row(user.id, user.email or "-", user.username or "-", user.role.value)
    console.print(table)
    return 0


async def set_role(client: CatalogClient, user_id: str, role: str) -> int:
    profile = await client.profiles.set_role(user_id, role)
    if profile is None:
        console.print(f"[red]User not found: {user_id}[/red]")
        return 1
    return 0


async def run(args) -> int:
    admin = bool(args.create_category or args.delete_category or args.users or args.set_role)
    client = await CatalogClient.connect(config, service_role=admin)
    try:
        if args.create_category:
            return await create_category(client, args)
        if args.delete_category:
            return await delete_category(client, args.delete_category)
        if args.users:
            return await list_users(client)
        if args.set_role:
            return await set_role(client, *args.set_role)
        if args.show:
            return await show_product(client, args.show)
        if args.categories:
            return await list_categories(client)
        if args.stats:
            return await show_stats(client)
        if args.watch:
            return await watch(client, args)
        return await list_products(client, args)
    finally:
        await client.close()


def main():
    """Main entry point."""
    args = parse_args()

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled by user[/yellow]")
        return 130
    except MutationError as e:
        console.print(f"\n[red]{e.user_message}[/red]")
        return 1
    except ValueError as e:
        console.print(f"\n[bold red]Configuration error: {e}[/bold red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
