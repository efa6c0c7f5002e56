"""Pydantic models for push delivery results."""

from enum import StrEnum

from pydantic import BaseModel, Field


class DeliveryOutcome(StrEnum):
    """Result of one push attempt to one endpoint."""

    DELIVERED = "delivered"
    EXPIRED = "expired"
    FAILED = "failed"


class DeliveryReport(BaseModel):
    """Aggregated outcome of notifying a single user."""

    sent: int = Field(default=0, description="Subscriptions delivered")
    total: int = Field(default=0, description="Subscriptions attempted")
    errors: list[str] = Field(default_factory=list)


class BroadcastReport(BaseModel):
    """Aggregated outcome of notifying several users."""

    users: int = 0
    sent: int = 0
    total: int = 0
    errors: list[str] = Field(default_factory=list)


class SubscriptionStats(BaseModel):
    """Subscription table counts."""

    total_subscriptions: int
    unique_users: int
