"""
Subscription Lifecycle

States:
    free  → trial → {premium, free}
    free  → premium
    premium is terminal (no downgrade path is modeled)

The lifecycle gates two things:
1. How many categories a user may create (see CategoryRegistry)
2. How many AI interactions a user may consume

DESIGN DECISION: Quota decisions are returned as explicit outcomes,
not raised. Hitting the free-tier limit is expected and frequent.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from receiptlens.audit import AuditLogger
from receiptlens.config import AppSettings, get_settings
from receiptlens.models.audit import AuditEventBuilder
from receiptlens.models.expense import utc_now
from receiptlens.models.profile import SubscriptionStatus, UserProfile
from receiptlens.subscription.profiles import ProfileRepository


_ONE_DAY = timedelta(days=1)


def _as_utc(moment: datetime) -> datetime:
    """Treat naive timestamps from older blobs as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def trial_days_elapsed(profile: UserProfile, now: datetime) -> Optional[int]:
    """
    Whole days since the trial started, rounded up.

    Any part of a day counts as a day, so a trial started 3 days and
    one second ago has used 4 days.
    """
    if profile.trial_start_date is None:
        return None
    elapsed = abs(_as_utc(now) - _as_utc(profile.trial_start_date))
    return math.ceil(elapsed / _ONE_DAY)


class SubscriptionLifecycle:
    """
    Owns the user's tier, trial window and AI-interaction quota.

    Every transition persists the new profile through the
    ProfileRepository before returning it.
    """

    def __init__(
        self,
        profiles: ProfileRepository,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._profiles = profiles
        self._settings = settings or get_settings().app
        self._audit = audit_logger or AuditLogger()

    def current_tier(self) -> Optional[SubscriptionStatus]:
        """Tier of the stored profile, or None when logged out."""
        profile = self._profiles.get()
        return profile.subscription_status if profile else None

    def check_trial_expiry(
        self,
        profile: UserProfile,
        now: Optional[datetime] = None,
    ) -> UserProfile:
        """
        Expire a trial that has run longer than the trial length.

        Must be called once per session before any quota checks.
        `trial_start_date` is kept so the trial stays on record.
        """
        if profile.subscription_status != SubscriptionStatus.TRIAL:
            return profile

        elapsed = trial_days_elapsed(profile, now or utc_now())
        if elapsed is None or elapsed <= self._settings.trial_length_days:
            return profile

        expired = profile.model_copy(
            update={"subscription_status": SubscriptionStatus.FREE}
        )
        self._profiles.save(expired)
        self._audit.log(AuditEventBuilder.trial_expired(profile.id, elapsed))
        return expired

    def start_trial(
        self,
        profile: UserProfile,
        now: Optional[datetime] = None,
    ) -> UserProfile:
        """
        Start a trial from any state.

        A previously consumed trial is not checked for; restarting is
        allowed.
        """
        started_at = now or utc_now()
        updated = profile.model_copy(
            update={
                "subscription_status": SubscriptionStatus.TRIAL,
                "trial_start_date": started_at,
            }
        )
        self._profiles.save(updated)
        self._audit.log(
            AuditEventBuilder.trial_started(profile.id, started_at.isoformat())
        )
        return updated

    def subscribe(self, profile: UserProfile) -> UserProfile:
        updated = profile.model_copy(
            update={"subscription_status": SubscriptionStatus.PREMIUM}
        )
        self._profiles.save(updated)
        self._audit.log(
            AuditEventBuilder.subscribed(profile.id, profile.subscription_status.value)
        )
        return updated

    def try_consume_ai_interaction(
        self,
        profile: UserProfile,
    ) -> tuple[UserProfile, bool]:
        """
        Account for one AI interaction.

        Trial and premium users are always allowed (the counter is kept
        for telemetry). Free users are allowed while the counter is
        below the limit. On denial nothing is written and the caller
        must block the action.

        Returns:
            (profile, allowed)
        """
        tier = profile.subscription_status
        if (
            not profile.has_unlimited_access
            and profile.ai_interaction_count >= self._settings.free_ai_interaction_limit
        ):
            self._audit.log(
                AuditEventBuilder.ai_interaction(
                    profile.id, False, profile.ai_interaction_count, tier.value
                )
            )
            return profile, False

        updated = profile.model_copy(
            update={"ai_interaction_count": profile.ai_interaction_count + 1}
        )
        self._profiles.save(updated)
        self._audit.log(
            AuditEventBuilder.ai_interaction(
                profile.id, True, updated.ai_interaction_count, tier.value
            )
        )
        return updated, True
