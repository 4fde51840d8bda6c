"""
Profile Repository

Owns the `userProfile` blob. An absent blob means nobody is logged in.
"""

from datetime import datetime
from typing import Any, Optional

from receiptlens.audit import AuditLogger
from receiptlens.config import AppSettings, get_settings
from receiptlens.models.audit import AuditEventBuilder
from receiptlens.models.expense import utc_now
from receiptlens.models.profile import SubscriptionStatus, UserProfile
from receiptlens.services.storage import JsonBlobRepository, RecordStore


class ProfileRepository(JsonBlobRepository):
    """Read, replace, patch and remove the signed-in user's profile."""

    key = "userProfile"

    def __init__(
        self,
        store: RecordStore,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(store)
        self._settings = settings or get_settings().app
        self._audit = audit_logger or AuditLogger()

    def get(self) -> Optional[UserProfile]:
        return self._decode_object(self._snapshot().value, UserProfile)

    def save(self, profile: UserProfile) -> UserProfile:
        self._write(profile.to_blob_dict(), self._snapshot())
        return profile

    def login(
        self,
        email: str = "user@example.com",
        now: Optional[datetime] = None,
    ) -> UserProfile:
        """Create and persist a fresh free-tier profile."""
        now = now or utc_now()
        profile = UserProfile(
            id=f"user_{int(now.timestamp() * 1000)}",
            name="",
            email=email,
            onboarding_completed=False,
            currency_preference=self._settings.default_currency,
            subscription_status=SubscriptionStatus.FREE,
            ai_interaction_count=0,
        )
        self.save(profile)
        self._audit.log(AuditEventBuilder.profile_created(profile.id))
        return profile

    def update(self, **changes: Any) -> Optional[UserProfile]:
        """
        Apply a partial update to the stored profile.

        Returns the updated profile, or None when nobody is logged in.
        """
        snapshot = self._snapshot()
        current = self._decode_object(snapshot.value, UserProfile)
        if current is None:
            return None

        merged = current.model_dump()
        merged.update(changes)
        updated = UserProfile.model_validate(merged)

        self._write(updated.to_blob_dict(), snapshot)
        self._audit.log(AuditEventBuilder.profile_updated(updated.id, sorted(changes)))
        return updated

    def complete_onboarding(self, name: str) -> Optional[UserProfile]:
        return self.update(name=name, onboarding_completed=True)

    def clear(self) -> None:
        """Remove the profile entirely (logout)."""
        self._remove()
        self._audit.log(AuditEventBuilder.profile_cleared())
