"""
Tests for user profiles, role-based price visibility and the products table.
"""

import asyncio

import pytest

from catalog.auth.profiles import (
    PRICE_FIELDS,
    ProfileService,
    Role,
    UserProfile,
    visible_price_fields,
)
from catalog.client import CatalogClient
from catalog.errors import GatewayError, MutationError
from catalog.transformers.product_transformer import ProductTransformer

from conftest import make_product_row


class TestUserProfile:
    def test_known_role(self):
        profile = UserProfile.model_validate({"id": 1, "email": "a@b.c", "role": "Wholesale"})

        assert profile.id == "1"
        assert profile.role == Role.WHOLESALE

    def test_unknown_role_falls_back_to_customer(self):
        for role in ("admin", "", None, "vip"):
            assert UserProfile.model_validate({"id": "u", "role": role}).role == Role.CUSTOMER

    def test_full_access(self):
        assert UserProfile(id="u", is_admin=True).has_full_access
        assert UserProfile(id="u", role=Role.FULL_DETAILS).has_full_access
        assert not UserProfile(id="u", role=Role.WHOLESALE).has_full_access

    def test_admin_effective_role(self):
        profile = UserProfile(id="u", is_admin=True, role=Role.CUSTOMER)

        assert profile.effective_role == Role.FULL_DETAILS
        assert profile.role == Role.CUSTOMER


class TestPriceVisibility:
    def test_customer_sees_piece_price_only(self):
        assert visible_price_fields(UserProfile(id="u", role=Role.CUSTOMER)) == ("piece_price",)

    def test_anonymous_viewer_is_a_customer(self):
        assert visible_price_fields(None) == ("piece_price",)

    def test_wholesale_sees_wholesale_price_only(self):
        profile = UserProfile(id="u", role=Role.WHOLESALE)
        assert visible_price_fields(profile) == ("wholesale_price",)

    def test_preparation_sees_no_prices(self):
        assert visible_price_fields(UserProfile(id="u", role=Role.PREPARATION)) == ()

    def test_full_details_sees_every_price(self):
        profile = UserProfile(id="u", role=Role.FULL_DETAILS)
        assert visible_price_fields(profile) == PRICE_FIELDS

    def test_admin_sees_everything(self):
        profile = UserProfile(id="u", is_admin=True, role=Role.PREPARATION)
        assert visible_price_fields(profile) == PRICE_FIELDS


class TestProfileService:
    def test_profile_is_cached(self, gateway):
        gateway.procedures["get_current_user"] = [{"id": "u1", "role": "preparation"}]
        service = ProfileService(gateway, ttl=60)

        first = asyncio.run(service.get_current_profile())
        second = asyncio.run(service.get_current_profile())

        assert first.role == Role.PREPARATION
        assert second is first
        assert len([c for c in gateway.calls if c[0] == "rpc"]) == 1

    def test_invalidate_forces_lookup(self, gateway):
        gateway.procedures["get_current_user"] = {"id": "u1"}
        service = ProfileService(gateway)

        asyncio.run(service.get_current_profile())
        service.invalidate()
        asyncio.run(service.get_current_profile())

        assert len(gateway.calls) == 2

    def test_cache_expires(self, gateway):
        gateway.procedures["get_current_user"] = {"id": "u1"}
        ticks = iter([100.0, 105.0, 111.0, 111.0])
        service = ProfileService(gateway, ttl=10, clock=lambda: next(ticks))

        for _ in range(3):
            asyncio.run(service.get_current_profile())

        assert len(gateway.calls) == 2

    def test_anonymous_user(self, gateway):
        gateway.procedures["get_current_user"] = None

        assert asyncio.run(ProfileService(gateway).get_current_profile()) is None

    def test_lookup_failure_returns_none(self, gateway):
        gateway.procedures["get_current_user"] = GatewayError("rpc get_current_user", "JWT expired")

        assert asyncio.run(ProfileService(gateway).get_current_profile()) is None


def user_row(user_id, role="customer", is_admin=False, **overrides):
    row = {"id": user_id, "email": f"{user_id}@example.com", "role": role, "is_admin": is_admin}
    row.update(overrides)
    return row


class TestPermissions:
    def test_list_users_skips_admins(self, make_gateway):
        gateway = make_gateway(
            users=[user_row("u1"), user_row("u2", role="wholesale"), user_row("a1", is_admin=True)]
        )

        users = asyncio.run(ProfileService(gateway).list_users())

        assert [(u.id, u.role) for u in users] == [("u1", Role.CUSTOMER), ("u2", Role.WHOLESALE)]

    def test_list_users_reads_configured_table(self, make_gateway):
        gateway = make_gateway(members=[user_row("u1")])

        users = asyncio.run(ProfileService(gateway, users_table="members").list_users())

        assert [u.id for u in users] == ["u1"]

    def test_list_users_failure(self, gateway):
        gateway.failing_tables.add("users")

        with pytest.raises(MutationError):
            asyncio.run(ProfileService(gateway).list_users())

    def test_set_role_clears_admin_flag(self, make_gateway):
        gateway = make_gateway(users=[user_row("u1", is_admin=True)])

        profile = asyncio.run(ProfileService(gateway).set_role("u1", "preparation"))

        assert profile.role == Role.PREPARATION
        assert profile.is_admin is False
        assert gateway.tables["users"][0]["role"] == "preparation"
        assert gateway.calls == [("update", "users", {"role": "preparation", "is_admin": False})]

    def test_set_role_invalidates_cached_profile(self, make_gateway):
        gateway = make_gateway(users=[user_row("u1")])
        gateway.procedures["get_current_user"] = {"id": "u1"}
        service = ProfileService(gateway)
        asyncio.run(service.get_current_profile())

        asyncio.run(service.set_role("u1", Role.WHOLESALE))
        gateway.procedures["get_current_user"] = {"id": "u1", "role": "wholesale"}

        assert asyncio.run(service.get_current_profile()).role == Role.WHOLESALE

    def test_set_role_unknown_user(self, gateway):
        assert asyncio.run(ProfileService(gateway).set_role("ghost", "wholesale")) is None

    def test_set_role_rejects_unknown_role(self, make_gateway):
        gateway = make_gateway(users=[user_row("u1")])

        with pytest.raises(MutationError) as exc_info:
            asyncio.run(ProfileService(gateway).set_role("u1", "admin"))

        assert exc_info.value.retryable is False
        assert gateway.calls == []

    def test_set_role_failure_has_arabic_message(self, make_gateway):
        gateway = make_gateway(users=[user_row("u1")])
        gateway.mutation_errors.append(GatewayError("update users", "permission denied"))

        with pytest.raises(MutationError) as exc_info:
            asyncio.run(ProfileService(gateway).set_role("u1", "wholesale"))

        assert exc_info.value.user_message == "حدث خطأ أثناء تحديث الصلاحيات"
        assert isinstance(exc_info.value.cause, GatewayError)


class TestProductsTable:
    def headers(self, client, products):
        table = asyncio.run(client.products_table(products))
        return [column.header for column in table.columns], table

    def test_columns_follow_role(self, gateway):
        products = ProductTransformer().transform_batch([make_product_row(1)])
        client = CatalogClient(gateway)

        headers, _ = self.headers(client, products)
        assert headers == ["Name", "Code", "Piece Price", "New"]

        gateway.procedures["get_current_user"] = {"id": "u1", "role": "wholesale"}
        client.profiles.invalidate()
        headers, table = self.headers(client, products)
        assert headers == ["Name", "Code", "Wholesale Price", "New"]
        assert table.row_count == 1

    def test_preparation_table_has_no_price_columns(self, gateway):
        products = ProductTransformer().transform_batch([make_product_row(1)])
        gateway.procedures["get_current_user"] = {"id": "u1", "role": "preparation"}

        headers, _ = self.headers(CatalogClient(gateway), products)

        assert headers == ["Name", "Code", "New"]

    def test_users_table_comes_from_configuration(self, gateway):
        assert CatalogClient(gateway).profiles.users_table == "users"
