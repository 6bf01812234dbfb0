"""
Severity and compliance-status resolution.

Pure functions translating ASFF vocabularies into the canonical report:

  - ``Severity.Label`` / ``Severity.Normalized``  ->  impact in [0.0, 1.0]
  - ``Compliance.Status``                        ->  :class:`ResultStatus`
  - ``Compliance.StatusReasons``                 ->  message / skip_message
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from .exceptions import MissingFieldError
from .schemas import ResultStatus
from .utils import encode, get_path

logger = logging.getLogger(__name__)

IMPACT_MAPPING: dict[str, float] = {
    "CRITICAL": 0.9,
    "HIGH": 0.7,
    "MEDIUM": 0.5,
    "LOW": 0.3,
    "INFORMATIONAL": 0.0,
}

INFORMATIONAL = "INFORMATIONAL"
MEDIUM = "MEDIUM"
SUPPRESSED = "SUPPRESSED"

# NOT_AVAILABLE primarily means the check could not run (service outage or
# API error) but is overloaded to mean "not applicable"; both read as skipped.
_STATUS_MAPPING: dict[str, ResultStatus] = {
    "PASSED": ResultStatus.PASSED,
    "WARNING": ResultStatus.SKIPPED,
    "FAILED": ResultStatus.FAILED,
    "NOT_AVAILABLE": ResultStatus.SKIPPED,
}

_MESSAGE_STATUSES = {"PASSED", "FAILED"}
_SKIP_MESSAGE_STATUSES = {"WARNING", "NOT_AVAILABLE"}

Severity = Union[str, float]


# ---------------------------------------------------------------------------
# Impact
# ---------------------------------------------------------------------------


def is_suppressed(finding: dict) -> bool:
    """Findings ignored on purpose (e.g. superseded by another standard)."""
    return get_path(finding, "Workflow.Status") == SUPPRESSED


def default_severity(finding: dict) -> Severity:
    """Return the label when present, else the normalized score scaled to 0-1.

    Severity is required, but producers may fill either ``Label`` or
    ``Normalized``; ``Label`` is preferred.
    """
    label = get_path(finding, "Severity.Label")
    if label:
        return label
    normalized = get_path(finding, "Severity.Normalized")
    if normalized is None:
        raise MissingFieldError(
            "Severity.Label", "neither Severity.Label nor Severity.Normalized is set"
        )
    return float(normalized) / 100.0


def impact_from_severity(severity: Severity) -> float:
    """Map a severity label or a pre-scaled number onto [0.0, 1.0]."""
    if isinstance(severity, str):
        label = severity.upper()
        if label not in IMPACT_MAPPING:
            logger.warning("Unknown severity label %r; using impact 0.0", severity)
            return 0.0
        return IMPACT_MAPPING[label]
    return min(max(float(severity), 0.0), 1.0)


# ---------------------------------------------------------------------------
# Compliance status
# ---------------------------------------------------------------------------


def _raw_status(finding: dict) -> Optional[Any]:
    return get_path(finding, "Compliance.Status")


def compliance_status(finding: dict) -> ResultStatus:
    """Map ``Compliance.Status`` to a canonical result status.

    An absent status is a skip; a status outside the ASFF enumeration
    signals a malformed finding and becomes ``error``.
    """
    status = _raw_status(finding)
    if status is None:
        return ResultStatus.SKIPPED
    mapped = _STATUS_MAPPING.get(status) if isinstance(status, str) else None
    if mapped is None:
        logger.warning("Unmapped compliance status %r; reporting as error", status)
        return ResultStatus.ERROR
    return mapped


def status_reason(finding: dict) -> Optional[str]:
    """Join ``Compliance.StatusReasons`` into ``key: value`` lines."""
    reasons = get_path(finding, "Compliance.StatusReasons")
    if not reasons:
        return None
    lines = [
        f"{encode(key)}: {encode(value)}"
        for reason in reasons
        for key, value in reason.items()
    ]
    return "\n".join(lines)


def result_messages(finding: dict) -> tuple[Optional[str], Optional[str]]:
    """Return ``(message, skip_message)`` for *finding*.

    Exactly mirrors :func:`compliance_status`: passed/failed results carry a
    message, skipped results a skip message, error results neither.
    """
    status = _raw_status(finding)
    reason = status_reason(finding)
    if isinstance(status, str) and status in _MESSAGE_STATUSES:
        return reason, None
    if status is None or (isinstance(status, str) and status in _SKIP_MESSAGE_STATUSES):
        return None, reason
    return None, None


__all__ = [
    "IMPACT_MAPPING",
    "INFORMATIONAL",
    "MEDIUM",
    "SUPPRESSED",
    "Severity",
    "compliance_status",
    "default_severity",
    "impact_from_severity",
    "is_suppressed",
    "result_messages",
    "status_reason",
]
