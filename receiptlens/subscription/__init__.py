"""Subscription and profile package."""

from receiptlens.subscription.lifecycle import SubscriptionLifecycle, trial_days_elapsed
from receiptlens.subscription.profiles import ProfileRepository

__all__ = ["ProfileRepository", "SubscriptionLifecycle", "trial_days_elapsed"]
