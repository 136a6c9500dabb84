"""Lifecycle rule set of the backup bucket and its validation."""

from __future__ import annotations

from collections.abc import Sequence

from ..constants import LIFECYCLE_RULE_ID, MULTIPART_ABORT_DAYS_DEFAULT
from ..exceptions import ConfigurationError
from .models import LifecycleRule, StorageClass, Transition

# S3 refuses transitions to the infrequent-access classes before day 30
_MIN_DAYS_BY_CLASS = {
    StorageClass.STANDARD_IA: 30,
    StorageClass.ONEZONE_IA: 30,
}


def default_lifecycle_rules() -> tuple[LifecycleRule, ...]:
    """Return the fixed rule set applied to every backup bucket.

    Current versions go to intelligent tiering after 30 days and to Glacier
    after 180. Noncurrent versions age faster: infrequent access after 30 days,
    Glacier after 60. Stalled multipart uploads are aborted after 10 days.
    """
    return (
        LifecycleRule(
            rule_id=LIFECYCLE_RULE_ID,
            transitions=(
                Transition(StorageClass.INTELLIGENT_TIERING, 30),
                Transition(StorageClass.GLACIER, 180),
            ),
            noncurrent_version_transitions=(
                Transition(StorageClass.STANDARD_IA, 30),
                Transition(StorageClass.GLACIER, 60),
            ),
            abort_incomplete_multipart_upload_after_days=MULTIPART_ABORT_DAYS_DEFAULT,
        ),
    )


def _validate_track(rule_id: str, track: str, transitions: Sequence[Transition]) -> None:
    previous: int | None = None
    for transition in transitions:
        if not isinstance(transition.storage_class, StorageClass):
            raise ConfigurationError(
                f"Lifecycle rule {rule_id}: unknown storage class {transition.storage_class!r} in {track}"
            )
        days = transition.after_days
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise ConfigurationError(
                f"Lifecycle rule {rule_id}: {track} age must be a positive number of days, got {days!r}"
            )
        minimum = _MIN_DAYS_BY_CLASS.get(transition.storage_class)
        if minimum is not None and days < minimum:
            raise ConfigurationError(
                f"Lifecycle rule {rule_id}: {track} to {transition.storage_class.value} "
                f"requires at least {minimum} days, got {days}"
            )
        if previous is not None and days <= previous:
            raise ConfigurationError(
                f"Lifecycle rule {rule_id}: {track} ages must be strictly increasing, "
                f"got {days} after {previous}"
            )
        previous = days


def validate_lifecycle_rules(rules: Sequence[LifecycleRule]) -> tuple[LifecycleRule, ...]:
    """Validate a lifecycle rule set before anything is sent to the backend.

    Args:
        rules: Rules to validate

    Returns:
        The rules as a tuple

    Raises:
        ConfigurationError: If the set is empty, a rule has no action, rule IDs
            repeat, or ages within a track are not strictly increasing
    """
    if not rules:
        raise ConfigurationError("At least one lifecycle rule is required")

    seen_ids: set[str] = set()
    for rule in rules:
        if not rule.rule_id:
            raise ConfigurationError("Lifecycle rule ID must not be empty")
        if rule.rule_id in seen_ids:
            raise ConfigurationError(f"Duplicate lifecycle rule ID {rule.rule_id}")
        seen_ids.add(rule.rule_id)

        if not rule.has_actions():
            raise ConfigurationError(f"Lifecycle rule {rule.rule_id} has no transitions and no multipart abort threshold")

        _validate_track(rule.rule_id, "current-version transitions", rule.transitions)
        _validate_track(rule.rule_id, "noncurrent-version transitions", rule.noncurrent_version_transitions)

        abort_days = rule.abort_incomplete_multipart_upload_after_days
        if abort_days is not None and (isinstance(abort_days, bool) or not isinstance(abort_days, int) or abort_days < 1):
            raise ConfigurationError(
                f"Lifecycle rule {rule.rule_id}: multipart abort threshold must be a positive number of days"
            )

    return tuple(rules)
