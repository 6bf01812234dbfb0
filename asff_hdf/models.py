"""
Intermediate data model.

A :class:`ControlRecord` is what field transformation produces for a single
sub-finding.  Records are never mutated; consolidation only reads them.
"""

from dataclasses import dataclass

from .schemas import HdfDescription, HdfRef, HdfResult


@dataclass(frozen=True)
class ControlRecord:
    """One control per sub-finding, before consolidation"""

    id: str
    title: str
    desc: str
    impact: float  # 0.0-1.0
    nist_tags: tuple[str, ...]
    descriptions: tuple[HdfDescription, ...]
    refs: tuple[HdfRef, ...]
    results: tuple[HdfResult, ...]

    def __post_init__(self):
        if not 0.0 <= self.impact <= 1.0:
            raise ValueError(
                f"impact must lie in [0.0, 1.0], got {self.impact!r} for {self.id!r}"
            )


__all__ = ["ControlRecord"]
