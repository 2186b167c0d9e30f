# core/models.py
"""
Plain data types shared by the validator, rate limiter, notifier and gateway.
Nothing here is persisted; every instance lives for a single request.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union


@dataclass
class ValidationError:
    """One rejected field"""
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {'field': self.field, 'message': self.message}


@dataclass
class PlanSubmission:
    """A validated, sanitized date plan"""
    name: str
    date: str
    time: str
    activities: List[str]
    submitted_at: str
    custom_activity: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


@dataclass
class ValidationResult:
    """Outcome of validating one raw payload"""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    sanitized: Optional[PlanSubmission] = None


@dataclass
class RateLimitEntry:
    count: int
    reset_time: float


@dataclass
class RateLimitResult:
    """Decision for one rate-limited request"""
    allowed: bool
    remaining: int
    reset_time: float
    limit: int


@dataclass
class NotificationDelivered:
    """The notification email was accepted by the transport"""
    attempts: int
    message_id: Optional[str]
    duration_ms: float

    def __bool__(self) -> bool:
        return True


@dataclass
class NotificationFailed:
    """Every attempt failed, or email is not configured"""
    attempts: int
    error: str
    duration_ms: float

    def __bool__(self) -> bool:
        return False


NotificationResult = Union[NotificationDelivered, NotificationFailed]
