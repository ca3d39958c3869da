"""Profile and out-of-office collaborator.

The engine only needs to know which profile is active, which profiles are out
of office, and when either changes. `StaticProfileDirectory` keeps that state
in memory and notifies subscribers synchronously.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()

PROFILE_SWITCHED = "profile_switched"
OUT_OF_OFFICE_CHANGED = "out_of_office_changed"

ProfileListener = Callable[[str, "Profile | None"], None]


class Profile(BaseModel):
    """A mailbox identity."""

    profile_id: str = Field(description="Stable profile id")
    name: str = Field(description="Display name used to sign auto-replies")
    is_out_of_office: bool = Field(default=False)
    auto_reply_message: str | None = Field(
        default=None, description="Custom auto-reply HTML, used when only this profile is away"
    )


OutOfOfficeProfile = Profile


class ProfileDirectory(Protocol):
    @property
    def active_profile_id(self) -> str | None: ...

    @property
    def active_profile_name(self) -> str | None: ...

    async def out_of_office_profiles(self) -> list[Profile]: ...

    def subscribe(self, listener: ProfileListener) -> Callable[[], None]: ...


class StaticProfileDirectory:
    """In-memory profile directory."""

    def __init__(self, profiles: list[Profile] | None = None, active_profile_id: str | None = None):
        self._profiles: dict[str, Profile] = {p.profile_id: p for p in profiles or []}
        self._active_profile_id = active_profile_id
        self._listeners: list[ProfileListener] = []

    @property
    def active_profile_id(self) -> str | None:
        return self._active_profile_id

    @property
    def active_profile_name(self) -> str | None:
        profile = self._profiles.get(self._active_profile_id or "")
        return profile.name if profile else None

    @property
    def profiles(self) -> list[Profile]:
        return list(self._profiles.values())

    async def out_of_office_profiles(self) -> list[Profile]:
        return [p for p in self._profiles.values() if p.is_out_of_office]

    def add_profile(self, profile: Profile) -> None:
        self._profiles[profile.profile_id] = profile

    def subscribe(self, listener: ProfileListener) -> Callable[[], None]:
        """Register a listener and return a function that removes it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def switch_profile(self, profile_id: str | None) -> None:
        if profile_id == self._active_profile_id:
            return
        if profile_id is not None and profile_id not in self._profiles:
            raise KeyError(f"Unknown profile: {profile_id}")

        self._active_profile_id = profile_id
        logger.info("profile_switched", profile_id=profile_id)
        self._emit(PROFILE_SWITCHED, self._profiles.get(profile_id or ""))

    def set_out_of_office(
        self,
        profile_id: str,
        is_out_of_office: bool,
        auto_reply_message: str | None = None,
    ) -> Profile:
        profile = self._profiles[profile_id]
        update: dict[str, object] = {"is_out_of_office": is_out_of_office}
        if auto_reply_message is not None:
            update["auto_reply_message"] = auto_reply_message
        profile = profile.model_copy(update=update)
        self._profiles[profile_id] = profile

        logger.info(
            "out_of_office_changed",
            profile_id=profile_id,
            is_out_of_office=is_out_of_office,
        )
        self._emit(OUT_OF_OFFICE_CHANGED, profile)
        return profile

    def _emit(self, event: str, profile: Profile | None) -> None:
        for listener in list(self._listeners):
            listener(event, profile)
