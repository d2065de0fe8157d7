"""Decayed severity of a user's warn history."""

from datetime import datetime
from typing import Sequence

from loguru import logger

from warden.moderation.models import EnforcementThresholds, Infraction, SeverityResult


def _age_in_days(infraction: Infraction, as_of: datetime) -> int:
    """Returns the whole days between the warn and `as_of`, never negative."""
    return max(0, (as_of - infraction.created_at).days)


def compute_severity(
    subject_id: int,
    as_of: datetime,
    thresholds: EnforcementThresholds,
    infractions: Sequence[Infraction],
) -> SeverityResult:
    """Computes the decayed severity of a user's active warns.

    `infractions` must already be limited to non-discarded warns within the
    validity window, sorted oldest first.

    Every `decay_interval_days`, `decay_amount` is subtracted from the total.
    The decay is counted from the oldest warn that is considered, so for every
    prefix of the history the prefix weight is discounted by the age of its
    newest member. The best prefix wins. Warns that are too old to raise the
    total drop out of the result this way, and the total never goes negative.
    """
    accumulated_weight = 0
    best_severity = 0
    best_decay = 0
    best_length = 0

    for index, infraction in enumerate(infractions):
        accumulated_weight += infraction.weight

        decay_steps = _age_in_days(infraction, as_of) // thresholds.decay_interval_days
        discount = thresholds.decay_amount * decay_steps
        candidate = accumulated_weight - discount

        if candidate > best_severity:
            best_severity = candidate
            best_decay = discount
            best_length = index + 1

    logger.trace(
        f"User {subject_id} has severity {best_severity} "
        f"({best_length} of {len(infractions)} warns, {best_decay} decayed)."
    )

    return SeverityResult(
        total_severity=best_severity,
        applied_decay=best_decay,
        contributing_infractions=tuple(infractions[:best_length]),
    )


def crossed_threshold(total_severity: int, weight: int, threshold: int) -> bool:
    """Returns whether the warn of `weight` is what pushed `total_severity` over `threshold`."""
    return total_severity > threshold and total_severity - weight <= threshold
