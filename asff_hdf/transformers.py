"""
Field Transformers.

Turns one ASFF sub-finding into a :class:`ControlRecord`.  Every field that
a producer may customise goes through :class:`OverrideInvoker` with the
generic computation as the default.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .config_loader import get_default_config
from .exceptions import MissingFieldError
from .invoker import OverrideInvoker
from .models import ControlRecord
from .schemas import HdfDescription, HdfRef, HdfResult
from .severity import (
    INFORMATIONAL,
    MEDIUM,
    Severity,
    compliance_status,
    default_severity,
    impact_from_severity,
    is_suppressed,
    result_messages,
)
from .utils import encode, get_path, require_path, unique

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("ProductArn", "GeneratorId", "Title", "Severity", "Resources")


class FieldTransformers:
    """Per-field conversion of ASFF findings.

    Parameters
    ----------
    invoker : OverrideInvoker
        Dispatches to producer overrides.
    config : dict, optional
        Flat mapper config; defaults to ``get_default_config()``.
    """

    def __init__(self, invoker: OverrideInvoker, config: Optional[Mapping[str, Any]] = None) -> None:
        self.invoker = invoker
        self.config = dict(config) if config is not None else get_default_config()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def finding_id(self, finding: dict) -> str:
        return self.invoker.resolve(
            finding.get("ProductArn"),
            finding,
            "finding_id",
            lambda: encode(require_path(finding, "GeneratorId")),
        )

    def title(self, finding: dict) -> str:
        return self.invoker.resolve(
            finding.get("ProductArn"),
            finding,
            "finding_title",
            lambda: encode(require_path(finding, "Title")),
        )

    def desc(self, finding: dict) -> str:
        return encode(get_path(finding, "Description"))

    # ------------------------------------------------------------------
    # Impact / tags
    # ------------------------------------------------------------------

    def _generic_severity(self, finding: dict) -> Severity:
        severity = default_severity(finding)
        if (
            self.config["upgrade_informational"]
            and isinstance(severity, str)
            and severity.upper() == INFORMATIONAL
        ):
            return MEDIUM
        return severity

    def impact(self, finding: dict) -> float:
        # Suppressed findings were ignored on purpose (e.g. the control is
        # superseded by another standard); no override may raise them.
        if is_suppressed(finding):
            return impact_from_severity(INFORMATIONAL)
        severity = self.invoker.resolve(
            finding.get("ProductArn"),
            finding,
            "finding_impact",
            lambda: self._generic_severity(finding),
        )
        return impact_from_severity(severity)

    def nist_tags(self, finding: dict) -> tuple[str, ...]:
        tags = self.invoker.resolve(finding.get("ProductArn"), finding, "finding_nist_tag", list)
        tags = unique(tags or [])
        if not tags:
            return tuple(self.config["default_nist_tags"])
        return tuple(tags)

    # ------------------------------------------------------------------
    # Descriptions / refs
    # ------------------------------------------------------------------

    def fix_descriptions(self, finding: dict) -> tuple[HdfDescription, ...]:
        recommendation = get_path(finding, "Remediation.Recommendation")
        if not isinstance(recommendation, dict):
            return ()
        parts = [encode(recommendation.get(k)) for k in ("Text", "Url") if recommendation.get(k)]
        if not parts:
            return ()
        return (HdfDescription(label="fix", data="\n".join(parts)),)

    def refs(self, finding: dict) -> tuple[HdfRef, ...]:
        url = get_path(finding, "SourceUrl")
        if not url:
            return ()
        return (HdfRef(url=str(url)),)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def code_desc(self, finding: dict) -> str:
        output = self.invoker.resolve(
            finding.get("ProductArn"), finding, "subfindings_code_desc", ""
        )
        if output:
            output += "; "

        resources = require_path(finding, "Resources")
        if not isinstance(resources, list):
            raise MissingFieldError("Resources", "expected a list of resources")

        summaries = []
        for resource in resources:
            summary = f"Type: {encode(resource.get('Type'))}, Id: {encode(resource.get('Id'))}"
            if "Partition" in resource:
                summary += f", Partition: {encode(resource['Partition'])}"
            if "Region" in resource:
                summary += f", Region: {encode(resource['Region'])}"
            summaries.append(summary)

        return output + f"Resources: [{', '.join(summaries)}]"

    def result(self, finding: dict) -> HdfResult:
        message, skip_message = result_messages(finding)
        start_time = get_path(finding, "LastObservedAt") or get_path(finding, "UpdatedAt")
        return HdfResult(
            status=compliance_status(finding),
            code_desc=self.code_desc(finding),
            message=message,
            skip_message=skip_message,
            start_time=start_time,
        )

    # ------------------------------------------------------------------
    # Whole record
    # ------------------------------------------------------------------

    def transform(self, finding: dict) -> ControlRecord:
        """Build the :class:`ControlRecord` for one sub-finding.

        Raises
        ------
        MissingFieldError
            If a required field is absent or an override cannot find a path.
        """
        for path in REQUIRED_FIELDS:
            require_path(finding, path)

        return ControlRecord(
            id=self.finding_id(finding),
            title=self.title(finding),
            desc=self.desc(finding),
            impact=self.impact(finding),
            nist_tags=self.nist_tags(finding),
            descriptions=self.fix_descriptions(finding),
            refs=self.refs(finding),
            results=(self.result(finding),),
        )


__all__ = ["REQUIRED_FIELDS", "FieldTransformers"]
