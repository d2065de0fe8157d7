"""Domain models for warns and enforcement."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

import arrow
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from warden.errors import ValidationFault

MAX_REASON_LENGTH = 1024
MAX_TIMEOUT_HOURS = 24 * 28


class SeverityClass(Enum):
    """How bad a warn is. Weights strictly increase with the tier."""

    LOW = 10
    MEDIUM = 20
    HIGH = 40

    @property
    def weight(self) -> int:
        """The severity weight counted towards a user's total."""
        return self.value


class ActionKind(Enum):
    """Every enforcement action Warden knows how to report."""

    WARN = "warn"
    TIMEOUT = "timeout"
    REMOVE_TIMEOUT = "remove_timeout"
    BAN = "ban"
    UNBAN = "unban"
    KICK = "kick"


class ConsistencyMode(Enum):
    """How concurrent warns for the same user are processed.

    `EVENTUAL` lets them interleave, so one may compute severity without the
    other's warn. `SERIALIZED` runs them one after another per user.
    """

    EVENTUAL = "eventual"
    SERIALIZED = "serialized"


class Infraction(BaseModel):
    """A single warn issued to a user."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    subject_id: int
    issuer_id: int
    severity_class: SeverityClass
    weight: int = Field(gt=0)
    reason: str = Field(min_length=1, max_length=MAX_REASON_LENGTH)
    created_at: datetime
    discarded: bool = False

    @classmethod
    def new(
        cls,
        subject_id: int,
        issuer_id: int,
        severity_class: SeverityClass,
        reason: str,
        created_at: Optional[datetime] = None,
    ) -> Infraction:
        """Creates a fresh, unsaved infraction, raising `ValidationFault` on bad input."""
        if created_at is None:
            created_at = arrow.utcnow().datetime

        try:
            return cls(
                subject_id=subject_id,
                issuer_id=issuer_id,
                severity_class=severity_class,
                weight=severity_class.weight,
                reason=reason,
                created_at=created_at,
            )
        except PydanticValidationError as error:
            raise ValidationFault(f"Invalid warn: {error}") from error

    def with_id(self, id_: str) -> Infraction:
        """Returns a copy carrying the store-assigned ID."""
        return self.model_copy(update={"id": id_})

    def as_discarded(self) -> Infraction:
        """Returns a discarded copy. Discarding can't be undone."""
        return self.model_copy(update={"discarded": True})


class SeverityResult(BaseModel):
    """A user's decayed severity at one point in time."""

    model_config = ConfigDict(frozen=True)

    total_severity: int = Field(ge=0)
    applied_decay: int = Field(ge=0)
    contributing_infractions: tuple[Infraction, ...] = ()

    @classmethod
    def empty(cls) -> SeverityResult:
        return cls(total_severity=0, applied_decay=0)


class EnforcementThresholds(BaseModel):
    """Per-community escalation settings."""

    model_config = ConfigDict(frozen=True)

    validity_window_days: int = Field(gt=0)
    decay_interval_days: int = Field(gt=0)
    decay_amount: int = Field(ge=0)
    timeout_threshold: int = Field(ge=0)
    ban_threshold: int = Field(ge=0)
    timeout_duration_hours: int = Field(gt=0, le=MAX_TIMEOUT_HOURS)

    @property
    def timeout_duration(self) -> timedelta:
        return timedelta(hours=self.timeout_duration_hours)


class EnforcementEvent(BaseModel):
    """One enforcement decision, as reported in notices and logs."""

    model_config = ConfigDict(frozen=True)

    subject_id: int
    issuer_id: int
    kind: ActionKind
    reason: str
    quiet: bool = False
    timestamp: datetime

    duration: Optional[timedelta] = None
    severity_class: Optional[SeverityClass] = None
    total_severity: Optional[int] = None
    max_severity: Optional[int] = None
    external: bool = False
