"""
HDF Schemas - Typed models for the canonical report emitted by the mapper.

These models describe the Heimdall Data Format (HDF) execution document a
downstream viewer consumes.  Leaf records (results, descriptions, refs) are
frozen and therefore hashable: the consolidation pass de-duplicates them by
structural equality rather than by comparing serialized strings.

Hierarchy:
    ResultStatus     - canonical result-status enumeration
    HdfResult        - one piece of evidence for a control
    HdfDescription   - labelled free text (``fix`` remediation text)
    HdfRef           - reference URL
    HdfControl       - one canonical control (consolidated check)
    HdfProfile       - the single profile carrying all controls
    HdfPlatform      - producer of the report
    HdfStatistics    - run statistics
    HdfExecution     - top-level report envelope
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ResultStatus(str, Enum):
    """Canonical result-status enumeration"""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Leaf records
# ---------------------------------------------------------------------------


class HdfResult(BaseModel):
    """Outcome of one sub-finding.

    ``message`` and ``skip_message`` are mutually exclusive; which one is
    populated mirrors ``status``.
    """

    status: ResultStatus
    code_desc: str
    message: Optional[str] = None
    skip_message: Optional[str] = None
    start_time: Optional[str] = None

    model_config = {"frozen": True}


class HdfDescription(BaseModel):
    label: str
    data: str

    model_config = {"frozen": True}


class HdfRef(BaseModel):
    url: str

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Control / profile / execution
# ---------------------------------------------------------------------------


class HdfControl(BaseModel):
    """One canonical control produced by consolidation.

    ``code`` carries the raw source findings behind the control so a
    reviewer can trace every result back to its vendor record.
    """

    id: str
    title: str
    desc: str = ""
    impact: float = Field(ge=0.0, le=1.0)
    tags: Dict[str, List[str]] = Field(default_factory=dict)
    descriptions: List[HdfDescription] = Field(default_factory=list)
    refs: List[HdfRef] = Field(default_factory=list)
    source_location: Dict[str, Any] = Field(default_factory=dict)
    code: str = ""
    results: List[HdfResult] = Field(default_factory=list)

    model_config = {"frozen": True}


class HdfProfile(BaseModel):
    name: str
    version: str = ""
    title: str
    maintainer: Optional[str] = None
    summary: str = ""
    license: Optional[str] = None
    copyright: Optional[str] = None
    copyright_email: Optional[str] = None
    supports: List[Any] = Field(default_factory=list)
    attributes: List[Any] = Field(default_factory=list)
    depends: List[Any] = Field(default_factory=list)
    groups: List[Any] = Field(default_factory=list)
    status: str = "loaded"
    controls: List[HdfControl] = Field(default_factory=list)
    sha256: str = ""


class HdfPlatform(BaseModel):
    name: str
    release: str
    target_id: str = ""


class HdfStatistics(BaseModel):
    duration: Optional[float] = None


class HdfExecution(BaseModel):
    """Top-level envelope of a converted report."""

    platform: HdfPlatform
    version: str
    statistics: HdfStatistics = Field(default_factory=HdfStatistics)
    profiles: List[HdfProfile]

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    def all_controls(self) -> List[HdfControl]:
        """Return every control across all profiles."""
        return [c for p in self.profiles for c in p.controls]

    def results_by_status(self) -> Dict[str, int]:
        """Return a dict counting results per status."""
        counts: Dict[str, int] = {}
        for control in self.all_controls():
            for result in control.results:
                status = result.status.value
                counts[status] = counts.get(status, 0) + 1
        return counts
