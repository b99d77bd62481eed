"""
Typed usage records stored on subscription claims.

The claim's usage column is JSON in the store. It is always read through
ClaimUsage.from_dict and written through ClaimUsage.to_dict, so malformed
payloads are rejected at the boundary instead of leaking into analytics.
Free-form facts go in `extensions`, which only accepts scalar values.
"""

import uuid
from copy import deepcopy
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Union

from content_access.access.clock import ensure_utc
from content_access.access.errors import InvalidUsageError
from content_access.constants.content_types import ContentType

ExtensionValue = Union[str, int, float, bool, None]

CLAIM_SOURCE_SUBSCRIPTION = "subscription_allowance"
ACCESS_DIRECT = "direct"
ACCESS_STUDENT_VIA_TEACHER = "student_via_teacher"

DEFAULT_MAX_TRACKED_SESSIONS = 50

# Activity types accepted per content type.
ACTIVITY_TYPES: Dict[ContentType, FrozenSet[str]] = {
    ContentType.FILE: frozenset({"view", "preview", "download"}),
    ContentType.GAME: frozenset({"view", "play", "create_session", "join_session"}),
    ContentType.LESSON_PLAN: frozenset({"view", "customize", "present"}),
    ContentType.WORKSHOP: frozenset({"view", "watch", "attend"}),
    ContentType.COURSE: frozenset({"view", "module_progress", "complete"}),
    ContentType.TOOL: frozenset({"view", "use"}),
}


class CompletionStatus:
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class UsagePattern:
    INACTIVE = "inactive"
    CASUAL = "casual_user"
    REGULAR = "regular_user"
    POWER = "power_user"


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def _validate_extensions(extensions: Any) -> Dict[str, ExtensionValue]:
    if extensions is None:
        return {}
    if not isinstance(extensions, dict):
        raise InvalidUsageError("extensions must be a mapping")
    for key, value in extensions.items():
        if not isinstance(key, str):
            raise InvalidUsageError("extension keys must be strings")
        if value is not None and not isinstance(value, (str, int, float, bool)):
            raise InvalidUsageError(
                f"extension '{key}' must be a scalar value",
                details={"key": key},
            )
    return dict(extensions)


@dataclass
class UsageEvent:
    """A single usage occurrence reported by a client or by delegated access."""

    duration_minutes: float = 0
    activity_type: str = "view"
    completion_percent: int = 0
    session_id: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    device_info: Optional[str] = None
    feature_action: Optional[str] = None
    student_user_id: Optional[str] = None
    access_type: str = ACCESS_DIRECT
    extensions: Dict[str, ExtensionValue] = field(default_factory=dict)

    def validate(self, content_type: ContentType) -> None:
        """
        Check the event against the content type's usage rules.

        Raises:
            InvalidUsageError: If any field is out of range or unknown
        """
        if self.duration_minutes is None or self.duration_minutes < 0:
            raise InvalidUsageError("duration_minutes must be non-negative")
        allowed = ACTIVITY_TYPES.get(content_type, frozenset({"view"}))
        if self.activity_type not in allowed:
            raise InvalidUsageError(
                f"activity '{self.activity_type}' is not valid for {content_type.value}",
                details={"allowed": sorted(allowed)},
            )
        if self.access_type not in (ACCESS_DIRECT, ACCESS_STUDENT_VIA_TEACHER):
            raise InvalidUsageError(f"unknown access_type '{self.access_type}'")
        if self.access_type == ACCESS_STUDENT_VIA_TEACHER and not self.student_user_id:
            raise InvalidUsageError("delegated usage requires student_user_id")
        self.extensions = _validate_extensions(self.extensions)


@dataclass
class UsageSession:
    """Stored session entry."""

    session_id: str
    started_at: str
    ended_at: str
    duration_minutes: float = 0
    activity_type: str = "view"
    completion_percent: int = 0
    device_info: str = "unknown"
    access_type: str = ACCESS_DIRECT
    student_user_id: Optional[str] = None

    @classmethod
    def from_event(cls, event: UsageEvent, now: datetime) -> "UsageSession":
        now_iso = now.isoformat()
        return cls(
            session_id=event.session_id or f"sess_{uuid.uuid4().hex[:12]}",
            started_at=(ensure_utc(event.started_at) or now).isoformat(),
            ended_at=(ensure_utc(event.ended_at).isoformat() if event.ended_at else now_iso),
            duration_minutes=event.duration_minutes or 0,
            activity_type=event.activity_type,
            completion_percent=min(100, max(0, int(event.completion_percent or 0))),
            device_info=event.device_info or "unknown",
            access_type=event.access_type,
            student_user_id=event.student_user_id,
        )


@dataclass
class EngagementMetrics:
    days_since_claimed: int = 0
    average_session_duration: float = 0
    peak_usage_hour: int = 0
    usage_pattern: str = UsagePattern.INACTIVE
    retention_score: float = 0
    unique_usage_days: int = 0
    sessions_per_day: float = 0


@dataclass
class ClaimUsage:
    """Usage record of one claim."""

    claimed_at: str
    claim_source: str = CLAIM_SOURCE_SUBSCRIPTION
    total_sessions: int = 0
    total_usage_minutes: float = 0
    first_accessed: Optional[str] = None
    last_accessed: Optional[str] = None
    sessions: List[UsageSession] = field(default_factory=list)
    engagement: EngagementMetrics = field(default_factory=EngagementMetrics)
    feature_usage: Dict[str, int] = field(default_factory=dict)
    completion_status: str = CompletionStatus.NOT_STARTED
    delegated_usage: Dict[str, int] = field(default_factory=dict)
    extensions: Dict[str, ExtensionValue] = field(default_factory=dict)

    @classmethod
    def initial(cls, claimed_at: datetime) -> "ClaimUsage":
        """Zeroed record written when a claim is created."""
        return cls(claimed_at=ensure_utc(claimed_at).isoformat())

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], claimed_at: Optional[datetime] = None) -> "ClaimUsage":
        """
        Load and validate a stored usage payload.

        Legacy rows without usage get a zeroed record.

        Raises:
            InvalidUsageError: If the payload does not match the structure
        """
        if not data:
            if claimed_at is None:
                raise InvalidUsageError("usage record has no claimed_at")
            return cls.initial(claimed_at)
        if not isinstance(data, dict):
            raise InvalidUsageError("usage record must be a mapping")

        data = deepcopy(data)
        try:
            sessions = [UsageSession(**s) for s in data.pop("sessions", []) or []]
            engagement = EngagementMetrics(**(data.pop("engagement", None) or {}))
            extensions = _validate_extensions(data.pop("extensions", None))
            usage = cls(sessions=sessions, engagement=engagement, extensions=extensions, **data)
        except TypeError as e:
            raise InvalidUsageError(f"malformed usage record: {e}")

        if usage.total_sessions < 0 or usage.total_usage_minutes < 0:
            raise InvalidUsageError("usage totals must be non-negative")
        if not isinstance(usage.feature_usage, dict) or not isinstance(usage.delegated_usage, dict):
            raise InvalidUsageError("usage counters must be mappings")
        return usage

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def apply(self, event: UsageEvent, now: datetime, max_sessions: int = DEFAULT_MAX_TRACKED_SESSIONS) -> None:
        """Fold a validated event into this record."""
        now_iso = now.isoformat()
        session = UsageSession.from_event(event, now)

        self.last_accessed = now_iso
        self.first_accessed = self.first_accessed or now_iso
        self.total_sessions += 1
        self.total_usage_minutes += event.duration_minutes or 0

        self.sessions.append(session)
        if len(self.sessions) > max_sessions:
            self.sessions = self.sessions[-max_sessions:]

        if event.feature_action:
            self.feature_usage[event.feature_action] = self.feature_usage.get(event.feature_action, 0) + 1

        if event.access_type == ACCESS_STUDENT_VIA_TEACHER:
            student = event.student_user_id
            self.delegated_usage[student] = self.delegated_usage.get(student, 0) + 1

        if session.completion_percent >= 100:
            self.completion_status = CompletionStatus.COMPLETED
        elif session.completion_percent > 0 and self.completion_status != CompletionStatus.COMPLETED:
            self.completion_status = CompletionStatus.IN_PROGRESS

        if event.extensions:
            self.extensions.update(event.extensions)

        self.engagement = calculate_engagement(self, now)


def calculate_engagement(usage: ClaimUsage, now: datetime) -> EngagementMetrics:
    """
    Derive engagement metrics from a usage record.

    Usage pattern thresholds:
    - power_user: >= 20 sessions averaging >= 45 minutes
    - regular_user: >= 8 sessions and >= 60 minutes total
    - casual_user: >= 2 sessions and >= 10 minutes total

    Retention score (0-10) compares actual sessions to an expected rate of
    0.3 sessions per day (capped at 15), weighted by how many distinct days
    saw activity.
    """
    claimed_at = _parse_dt(usage.claimed_at)
    if claimed_at is None:
        return EngagementMetrics()

    days_since_claimed = max(0, (ensure_utc(now) - claimed_at).days)
    sessions = usage.sessions
    total_sessions = len(sessions)
    total_minutes = usage.total_usage_minutes or 0

    avg_duration = round(total_minutes / total_sessions, 2) if total_sessions else 0

    if total_sessions >= 20 and avg_duration >= 45:
        pattern = UsagePattern.POWER
    elif total_sessions >= 8 and total_minutes >= 60:
        pattern = UsagePattern.REGULAR
    elif total_sessions >= 2 and total_minutes >= 10:
        pattern = UsagePattern.CASUAL
    else:
        pattern = UsagePattern.INACTIVE

    hour_counts: Dict[int, int] = {}
    unique_days = set()
    for session in sessions:
        try:
            started = _parse_dt(session.started_at)
        except ValueError:
            continue
        if started is None:
            continue
        hour_counts[started.hour] = hour_counts.get(started.hour, 0) + 1
        unique_days.add(started.date())

    peak_hour = max(hour_counts, key=lambda h: hour_counts[h]) if hour_counts else 0

    expected_sessions = min(days_since_claimed * 0.3, 15)
    retention_multiplier = min(2.0, total_sessions / max(expected_sessions, 1))
    consistency_bonus = min(1.5, len(unique_days) / max(days_since_claimed, 1))
    retention_score = min(10, retention_multiplier * consistency_bonus * 5)

    return EngagementMetrics(
        days_since_claimed=days_since_claimed,
        average_session_duration=avg_duration,
        peak_usage_hour=peak_hour,
        usage_pattern=pattern,
        retention_score=round(retention_score, 1),
        unique_usage_days=len(unique_days),
        sessions_per_day=round(total_sessions / days_since_claimed, 2) if days_since_claimed > 0 else 0,
    )
