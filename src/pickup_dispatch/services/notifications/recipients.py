"""Resolution of who should be told about a lifecycle event."""

from __future__ import annotations

from typing import Protocol, Sequence

from ...config import settings
from ...models.domain import Role
from ...persistence.base import UserDirectory


class RecipientResolver(Protocol):
    def dispatchers(self) -> list[str]:
        ...


class DirectoryRecipientResolver:
    """Looks up active dispatcher-role users in the user directory."""

    def __init__(self, users: UserDirectory, roles: Sequence[str] | None = None) -> None:
        self.users = users
        self.roles = tuple(Role(role) for role in (roles or settings.dispatcher_roles))

    def dispatchers(self) -> list[str]:
        return [user.id for user in self.users.list_by_role(self.roles) if user.is_active]
