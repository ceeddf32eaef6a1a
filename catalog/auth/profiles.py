"""
User profiles, price visibility by role and role administration.
"""

import time
from enum import Enum
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator
from rich.console import Console

from catalog.errors import GatewayError, MutationError

console = Console()


class Role(str, Enum):
    CUSTOMER = "customer"
    WHOLESALE = "wholesale"
    PREPARATION = "preparation"
    FULL_DETAILS = "full_details"


PRICE_FIELDS = ("piece_price", "pack_price", "box_price", "wholesale_price")

# Price columns each role may see. Order preparers see no prices at all.
ROLE_PRICE_FIELDS = {
    Role.CUSTOMER: ("piece_price",),
    Role.WHOLESALE: ("wholesale_price",),
    Role.PREPARATION: (),
    Role.FULL_DETAILS: PRICE_FIELDS,
}


class UserProfile(BaseModel):
    """Row of the users table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str = ""
    username: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    governorate: Optional[str] = None
    avatar_url: Optional[str] = None
    is_admin: bool = False
    role: Role = Role.CUSTOMER

    @field_validator("id", mode="before")
    @classmethod
    def clean_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("is_admin", mode="before")
    @classmethod
    def clean_admin(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("role", mode="before")
    @classmethod
    def clean_role(cls, v: Any) -> Role:
        """Unknown or empty roles (including the legacy "admin") fall back to customer."""
        if isinstance(v, Role):
            return v
        try:
            return Role(str(v).strip().lower())
        except ValueError:
            return Role.CUSTOMER

    @property
    def effective_role(self) -> Role:
        """Admins see everything a full_details user sees."""
        return Role.FULL_DETAILS if self.is_admin else self.role

    @property
    def has_full_access(self) -> bool:
        return self.effective_role == Role.FULL_DETAILS


def visible_price_fields(profile: Optional[UserProfile]) -> tuple:
    """Price columns a viewer may see. Anonymous viewers are customers."""
    if profile is None:
        return ROLE_PRICE_FIELDS[Role.CUSTOMER]
    return ROLE_PRICE_FIELDS[profile.effective_role]


class ProfileService:
    """Current-user profile lookup through the get_current_user procedure."""

    def __init__(
        self,
        gateway,
        ttl: float = 300.0,
        procedure: str = "get_current_user",
        clock: Callable[[], float] = time.monotonic,
        users_table: str = "users",
    ):
        self.gateway = gateway
        self.users_table = users_table
        self.ttl = ttl
        self.procedure = procedure
        self.clock = clock
        self._cached: Optional[UserProfile] = None
        self._cached_at: Optional[float] = None

    def invalidate(self) -> None:
        """Forget the cached profile (call on sign-in / sign-out)."""
        self._cached = None
        self._cached_at = None

    async def get_current_profile(self) -> Optional[UserProfile]:
        """The signed-in user's profile, None if anonymous or unavailable."""
        if self._cached_at is not None and self.clock() - self._cached_at < self.ttl:
            return self._cached

        try:
            data = await self.gateway.call_procedure(self.procedure)
        except GatewayError as e:
            console.print(f"[red]Error fetching user profile: {e}[/red]")
            return None

        if isinstance(data, list):
            data = data[0] if data else None
        try:
            profile = UserProfile.model_validate(data) if data else None
        except ValueError as e:
            console.print(f"[yellow]Invalid user profile: {e}[/yellow]")
            profile = None

        self._cached, self._cached_at = profile, self.clock()
        return profile

    async def list_users(self) -> list[UserProfile]:
        """Non-admin users, the ones whose role an admin may change."""
        try:
            rows = await self.gateway.query_collection(
                self.users_table, filters={"is_admin": False}
            )
        except GatewayError as e:
            raise MutationError("حدث خطأ أثناء جلب بيانات المستخدمين", cause=e) from e

        users = []
        for row in rows:
            try:
                users.append(UserProfile.model_validate(row))
            except ValueError as e:
                console.print(f"[yellow]Skipping invalid user row: {e}[/yellow]")
        console.print(f"[dim]Loaded {len(users)} users[/dim]")
        return users

    async def set_role(self, user_id: str, role: Union[Role, str]) -> Optional[UserProfile]:
        """
        Change a user's role. The admin flag is always cleared.

        Returns:
            The updated profile, None if no user has that id
        """
        try:
            role = Role(role)
        except ValueError as e:
            raise MutationError(f"صلاحية غير معروفة: {role}", retryable=False) from e

        try:
            rows = await self.gateway.mutate_collection(
                self.users_table,
                "update",
                {"role": role.value, "is_admin": False},
                id_value=user_id,
            )
        except GatewayError as e:
            raise MutationError("حدث خطأ أثناء تحديث الصلاحيات", cause=e) from e

        # The signed-in user may be the one whose role changed
        self.invalidate()
        if not rows:
            console.print(f"[yellow]No user with id {user_id}[/yellow]")
            return None
        console.print(f"[green]✓ Role of {user_id} set to {role.value}[/green]")
        return UserProfile.model_validate(rows[0])
