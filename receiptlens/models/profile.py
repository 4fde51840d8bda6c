"""
User Profile Models

The profile carries the subscription tier, the trial window and the
AI-interaction counter. It is persisted with camelCase keys, matching
the blob written by the web app.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class SubscriptionStatus(str, Enum):
    """
    Subscription tier.

    free → trial → {premium, free}; free → premium.
    premium is terminal, no downgrade path is modeled.
    """
    FREE = "free"
    TRIAL = "trial"
    PREMIUM = "premium"


class UserProfile(BaseModel):
    """
    The signed-in user.

    `trial_start_date` is kept after a trial expires so the history of
    having had a trial is preserved.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: str
    name: str = ""
    email: str = ""
    photo_url: Optional[str] = None
    monthly_budget: Optional[float] = Field(default=None, ge=0)
    onboarding_completed: bool = False
    currency_preference: str = "BRL"

    # Subscription & limits
    subscription_status: SubscriptionStatus = SubscriptionStatus.FREE
    trial_start_date: Optional[datetime] = None
    ai_interaction_count: int = Field(default=0, ge=0)

    @model_validator(mode='after')
    def validate_trial_window(self) -> 'UserProfile':
        if (
            self.subscription_status == SubscriptionStatus.TRIAL
            and self.trial_start_date is None
        ):
            raise ValueError("A trial profile must have a trial start date")
        return self

    @property
    def has_unlimited_access(self) -> bool:
        """Trial and premium users are not subject to free-tier limits."""
        return self.subscription_status in (
            SubscriptionStatus.TRIAL,
            SubscriptionStatus.PREMIUM,
        )

    def to_blob_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
