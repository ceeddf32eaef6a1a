"""
Tests for the command-line entry point.
"""

import asyncio
from argparse import Namespace
from unittest.mock import AsyncMock, patch

import main
from catalog.client import CatalogClient
from catalog.sync.reconciler import LoadOptions

from conftest import make_product_row


class TestCLIArguments:
    """Test CLI argument parsing."""

    def test_defaults(self):
        args = main.parse_args([])

        assert args.products is False
        assert args.watch is False
        assert args.pages == 1
        assert args.limit is None
        assert args.create_category is None

    def test_browse_options(self):
        args = main.parse_args(["-p", "-c", "c1", "--new-only", "-n", "20", "-s", "شاي", "--pages", "3"])

        assert args.products is True
        assert args.category == "c1"
        assert args.new_only is True
        assert args.limit == 20
        assert args.search == "شاي"
        assert args.pages == 3

    def test_admin_options(self):
        args = main.parse_args(["--create-category", "مشروبات", "--image", "drinks.png"])

        assert args.create_category == "مشروبات"
        assert args.image.name == "drinks.png"

    def test_show_and_role_options(self):
        assert main.parse_args(["--show", "p7"]).show == "p7"
        assert main.parse_args(["--set-role", "u1", "wholesale"]).set_role == ["u1", "wholesale"]
        assert main.parse_args(["--users"]).users is True

    def test_load_options(self):
        args = main.parse_args(["-c", "c9", "--new-only", "-n", "4"])

        assert main.load_options(args) == LoadOptions(category_id="c9", new_only=True, limit=4)


class TestCommands:
    def test_list_products_pages(self, make_gateway, product_rows):
        client = CatalogClient(make_gateway(products=product_rows(20)))
        client.connectivity.probe_url = None
        args = main.parse_args(["-p", "--pages", "2"])

        async def scenario():
            with patch.object(main, "render_view", new=AsyncMock()) as render:
                code = await main.list_products(client, args)
            view = render.await_args.args[1]
            return code, view

        code, view = asyncio.run(scenario())

        assert code == 0
        assert len(view.state.visible) == 16
        assert view.mounted is False

    def test_list_products_search(self, make_gateway):
        rows = [make_product_row(1, name="شاي"), make_product_row(2, name="قهوة")]
        client = CatalogClient(make_gateway(products=rows))
        client.connectivity.probe_url = None
        args = main.parse_args(["-p", "-s", "قهوة"])

        async def scenario():
            with patch.object(main, "render_view", new=AsyncMock()) as render:
                await main.list_products(client, args)
            return render.await_args.args[1]

        view = asyncio.run(scenario())

        assert [p.id for p in view.state.visible] == ["p2"]

    def test_show_product(self, make_gateway):
        client = CatalogClient(make_gateway(products=[make_product_row(1), make_product_row(2)]))

        with patch.object(main.console, "print") as printed:
            code = asyncio.run(main.show_product(client, "p2"))

        assert code == 0
        table = printed.call_args.args[0]
        assert table.title == "منتج 2"
        assert table.row_count == 1

    def test_show_missing_product(self, gateway):
        assert asyncio.run(main.show_product(CatalogClient(gateway), "nope")) == 1

    def test_set_role(self, make_gateway):
        gateway = make_gateway(users=[{"id": "u1", "role": "customer", "is_admin": False}])
        client = CatalogClient(gateway)

        assert asyncio.run(main.set_role(client, "u1", "full_details")) == 0
        assert gateway.tables["users"][0]["role"] == "full_details"
        assert asyncio.run(main.set_role(client, "ghost", "wholesale")) == 1

    def test_list_users(self, make_gateway):
        client = CatalogClient(make_gateway(users=[{"id": "u1", "role": "wholesale", "is_admin": False}]))

        with patch.object(main.console, "print") as printed:
            assert asyncio.run(main.list_users(client)) == 0

        assert printed.call_args.args[0].row_count == 1

    def test_delete_unknown_category(self, gateway):
        client = CatalogClient(gateway)

        assert asyncio.run(main.delete_category(client, "missing")) == 1

    def test_main_reports_configuration_errors(self):
        with patch.object(main, "parse_args", return_value=Namespace()), patch.object(
            main, "run", new=AsyncMock(side_effect=ValueError("Supabase credentials required"))
        ):
            assert main.main() == 1
