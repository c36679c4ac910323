"""
Rule validation.

Pure checks, no I/O, so an edit can be rejected before the store is
touched. Each failing check raises the matching domain error; the full
sequence stops at the first failure:

    create: pattern -> comment -> project id -> condition -> level
    edit:   pattern -> comment -> condition -> level
"""

import re
from typing import Optional

from vigil.core.config import settings
from vigil.core.errors import (
    InvalidLevel,
    InvalidPattern,
    InvalidProjectID,
    MissingComment,
    NoCondition,
)
from vigil.models.rule import RuleLevel
from vigil.schemas.rule import RuleFields

PATTERN_SEPARATOR = "."
PATTERN_WILDCARD = "*"

# One segment: letters, digits, underscore, dash and the wildcard.
_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_\-*]+$")


def validate_rule_pattern(pattern: str, max_len: Optional[int] = None) -> None:
    """
    Check a metric name pattern.

    Raises:
        InvalidPattern: with a reason naming the broken rule.
    """
    if max_len is None:
        max_len = settings.rule_pattern_max_len

    if not pattern:
        raise InvalidPattern("pattern is empty")
    if len(pattern) > max_len:
        raise InvalidPattern(f"pattern is longer than {max_len} characters")

    for segment in pattern.split(PATTERN_SEPARATOR):
        if not segment:
            raise InvalidPattern("pattern has an empty segment")
        if not _SEGMENT_RE.match(segment):
            raise InvalidPattern(f"segment '{segment}' contains invalid characters")


def validate_rule_level(level: int) -> None:
    """
    Check the level belongs to RuleLevel.

    Raises:
        InvalidLevel
    """
    allowed = [int(member) for member in RuleLevel]
    if level not in allowed:
        raise InvalidLevel(f"level must be one of {allowed}, got {level}")


def validate_rule_comment(comment: str) -> None:
    if not comment:
        raise MissingComment()


def has_condition(
    trend_up: bool,
    trend_down: bool,
    threshold_max: float,
    threshold_min: float,
) -> bool:
    """A rule must alert on something: a trend or a non-zero threshold."""
    return trend_up or trend_down or threshold_max != 0 or threshold_min != 0


def validate_rule_condition(fields: RuleFields) -> None:
    if not has_condition(
        fields.trend_up,
        fields.trend_down,
        fields.threshold_max,
        fields.threshold_min,
    ):
        raise NoCondition()


def validate_project_id(project_id: int) -> None:
    if project_id <= 0:
        raise InvalidProjectID()


def validate_rule_fields(fields: RuleFields, project_id: Optional[int] = None) -> None:
    """
    Run every check in order and raise the first failure.

    Args:
        fields: Bound request body
        project_id: Owning project for a create; None for an edit, since
            the project of an existing rule can't change.
    """
    validate_rule_pattern(fields.pattern)
    validate_rule_comment(fields.comment)
    if project_id is not None:
        validate_project_id(project_id)
    validate_rule_condition(fields)
    validate_rule_level(fields.level)
