"""Boundary to the profile/statistics backend.

The backend is an authorization-gated key-value store owned elsewhere; this
package only talks to it through ``ProfileStore``. ``ProfileBackend`` is an
in-memory stand-in with the same capability rules, used for local runs and
tests. Nothing in the HTTP app imports this module; it is a library entry
point for the UI layer.
"""

from enum import Enum
from typing import Dict, Optional, Protocol

from pydantic import BaseModel

from globalfm.errors import AuthorizationDenied


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


_RANK = {UserRole.GUEST: 0, UserRole.USER: 1, UserRole.ADMIN: 2}


class UserProfile(BaseModel):
    name: str


class UserStats(BaseModel):
    weekly_active_users: int = 0
    monthly_active_users: int = 0
    lifetime_users: int = 0


class ChannelStatus(BaseModel):
    live_channels: int = 0
    offline_channels: int = 0


class StatsSummary(BaseModel):
    total_users: int = 0
    total_stats: int = 0
    total_channels: int = 0
    total_live_channels: int = 0
    total_offline_channels: int = 0
    total_weekly_active_users: int = 0
    total_monthly_active_users: int = 0
    total_lifetime_users: int = 0


class ProfileStore(Protocol):
    """Per-caller view of the backend. Every call needs at least ``user``."""

    async def get_profile(self) -> Optional[UserProfile]: ...

    async def save_profile(self, profile: UserProfile) -> None: ...

    async def get_stats(self) -> Optional[UserStats]: ...

    async def save_stats(self, stats: UserStats) -> None: ...

    async def get_channel_status(self) -> Optional[ChannelStatus]: ...

    async def save_channel_status(self, status: ChannelStatus) -> None: ...


class ProfileBackend:
    def __init__(self):
        self.roles: Dict[str, UserRole] = {}
        self.profiles: Dict[str, UserProfile] = {}
        self.stats: Dict[str, UserStats] = {}
        self.channel_statuses: Dict[str, ChannelStatus] = {}

    def role_of(self, principal: str) -> UserRole:
        return self.roles.get(principal, UserRole.GUEST)

    def initialize_access_control(self, principal: str) -> None:
        """The first caller to initialize becomes admin; later callers become users."""
        if principal in self.roles:
            return
        has_admin = any(role == UserRole.ADMIN for role in self.roles.values())
        self.roles[principal] = UserRole.USER if has_admin else UserRole.ADMIN

    def as_caller(self, principal: str) -> "CallerProfileStore":
        return CallerProfileStore(self, principal)


class CallerProfileStore:
    def __init__(self, backend: ProfileBackend, principal: str):
        self.backend = backend
        self.principal = principal

    def _require(self, role: UserRole) -> None:
        actual = self.backend.role_of(self.principal)
        if _RANK[actual] < _RANK[role]:
            raise AuthorizationDenied(role.value, actual.value)

    async def get_profile(self) -> Optional[UserProfile]:
        self._require(UserRole.USER)
        return self.backend.profiles.get(self.principal)

    async def save_profile(self, profile: UserProfile) -> None:
        self._require(UserRole.USER)
        self.backend.profiles[self.principal] = profile

    async def get_stats(self) -> Optional[UserStats]:
        self._require(UserRole.USER)
        return self.backend.stats.get(self.principal)

    async def save_stats(self, stats: UserStats) -> None:
        self._require(UserRole.USER)
        self.backend.stats[self.principal] = stats

    async def get_channel_status(self) -> Optional[ChannelStatus]:
        self._require(UserRole.USER)
        return self.backend.channel_statuses.get(self.principal)

    async def save_channel_status(self, status: ChannelStatus) -> None:
        self._require(UserRole.USER)
        self.backend.channel_statuses[self.principal] = status

    # admin-only

    async def assign_role(self, principal: str, role: UserRole) -> None:
        self._require(UserRole.ADMIN)
        self.backend.roles[principal] = role

    async def get_all_profiles(self) -> Dict[str, UserProfile]:
        self._require(UserRole.ADMIN)
        return dict(self.backend.profiles)

    async def get_all_stats(self) -> Dict[str, UserStats]:
        self._require(UserRole.ADMIN)
        return dict(self.backend.stats)

    async def get_all_channel_statuses(self) -> Dict[str, ChannelStatus]:
        self._require(UserRole.ADMIN)
        return dict(self.backend.channel_statuses)

    async def stats_summary(self) -> StatsSummary:
        self._require(UserRole.ADMIN)
        stats = self.backend.stats.values()
        channels = self.backend.channel_statuses.values()
        live = sum(c.live_channels for c in channels)
        offline = sum(c.offline_channels for c in channels)
        return StatsSummary(
            total_users=len(self.backend.profiles),
            total_stats=len(self.backend.stats),
            total_channels=live + offline,
            total_live_channels=live,
            total_offline_channels=offline,
            total_weekly_active_users=sum(s.weekly_active_users for s in stats),
            total_monthly_active_users=sum(s.monthly_active_users for s in stats),
            total_lifetime_users=sum(s.lifetime_users for s in stats),
        )
