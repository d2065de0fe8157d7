"""Database models."""

from datetime import datetime

import arrow
from beanie import Document
from pymongo import ASCENDING, IndexModel

from warden.moderation.models import Infraction, SeverityClass


class InfractionRecord(Document):
    """A stored warn."""

    subject_id: int
    issuer_id: int
    severity: str
    weight: int
    reason: str
    created_at: datetime
    discarded: bool = False

    class Settings:
        name = "infractions"
        indexes = [
            IndexModel([("subject_id", ASCENDING), ("created_at", ASCENDING)]),
        ]

    @classmethod
    def from_infraction(cls, infraction: Infraction) -> "InfractionRecord":
        return cls(
            subject_id=infraction.subject_id,
            issuer_id=infraction.issuer_id,
            severity=infraction.severity_class.name,
            weight=infraction.weight,
            reason=infraction.reason,
            created_at=infraction.created_at,
            discarded=infraction.discarded,
        )

    def to_infraction(self) -> Infraction:
        # Naive datetimes from a client without tz_aware are UTC.
        return Infraction(
            id=str(self.id),
            subject_id=self.subject_id,
            issuer_id=self.issuer_id,
            severity_class=SeverityClass[self.severity],
            weight=self.weight,
            reason=self.reason,
            created_at=arrow.get(self.created_at).datetime,
            discarded=self.discarded,
        )
