"""
application.services.profile - Profile snapshot and onboarding.

The core treats the profile as read-only except for onboarding (which
writes the whole snapshot once) and the "add this medication to my
profile" shortcut handled by PainLogService.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from application.analysis.conditions import onboarding_defaults
from domain.entities import ProfileMedication, UserProfile
from domain.exceptions import ProfileNotFoundError
from domain.models import UserPatterns, dedupe
from domain.ports import ProfileStore

logger = logging.getLogger(__name__)


class ProfileService:
    """Reads the profile snapshot and applies onboarding answers."""

    def __init__(self, profile_store: ProfileStore):
        self._profile_store = profile_store

    async def get_snapshot(self, user_id: str) -> Optional[UserProfile]:
        return await self._profile_store.get_profile(user_id)

    async def require_snapshot(self, user_id: str) -> UserProfile:
        profile = await self._profile_store.get_profile(user_id)
        if profile is None:
            raise ProfileNotFoundError(f"No profile for user {user_id}")
        return profile

    async def complete_onboarding(
        self,
        user_id: str,
        diagnosis: str,
        *,
        pain_locations: Optional[Sequence[str]] = None,
        pain_is_consistent: Optional[bool] = None,
        medications: Sequence[ProfileMedication] = (),
        patterns: Optional[UserPatterns] = None,
    ) -> UserProfile:
        """Save onboarding answers, filling blanks from the diagnosis defaults."""
        defaults = onboarding_defaults(diagnosis, patterns)

        if pain_is_consistent is None:
            pain_is_consistent = bool(defaults.pain_is_consistent)
        locations = list(pain_locations) if pain_locations else list(defaults.pain_locations)

        profile = UserProfile(
            user_id=user_id,
            diagnosis=diagnosis.strip(),
            pain_is_consistent=pain_is_consistent,
            default_pain_locations=dedupe(locations),
            current_medications=[m for m in medications if m.name.strip()],
        )
        await self._profile_store.save_profile(profile)
        logger.info(
            "Onboarded user %s (condition=%s, consistent=%s, locations=%s)",
            user_id, defaults.condition, pain_is_consistent, profile.default_pain_locations,
        )
        return profile
