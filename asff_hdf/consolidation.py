"""
Consolidation Engine.

Groups per-sub-finding :class:`ControlRecord` objects into canonical
controls.  Grouping is by (producer family, record id): sub-findings a
producer reports separately for one logical check (one per resource, one per
region, ...) become a single control whose results list every sub-finding.

Merge rules per group:

  - **title**        ``<product name>: <unique member titles joined by ;>``
  - **impact**       maximum across members
  - **tags**         union of policy tags
  - **desc**         family ``desc`` override, else unique descriptions
  - **descriptions / refs / results**  structural union, empties dropped
  - **code**         the group's raw findings as pretty-printed JSON

An id emitted by more than one family is qualified as
``[<product name>] <id>`` in every family that emits it; ids unique to one
family are left as they are.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from .config_loader import get_default_config
from .invoker import OverrideInvoker
from .models import ControlRecord
from .producers import ProducerFamily, product_namespace
from .schemas import HdfControl
from .utils import encode, unique

logger = logging.getLogger(__name__)


@dataclass
class _FamilyGroup:
    """Records of one producer family, bucketed by record id."""

    family: ProducerFamily
    by_id: dict[str, list[tuple[ControlRecord, dict]]] = field(default_factory=dict)

    def add(self, record: ControlRecord, finding: dict) -> None:
        self.by_id.setdefault(record.id, []).append((record, finding))


class Consolidator:
    """Merges control records into canonical controls.

    Parameters
    ----------
    invoker : OverrideInvoker
        Used for ``product_name`` and ``desc`` overrides and, through its
        registry, for matching findings to producer families.
    config : dict, optional
        Flat mapper config; only ``policy_tag_key`` is read.
    """

    def __init__(self, invoker: OverrideInvoker, config: Optional[Mapping[str, Any]] = None) -> None:
        self.invoker = invoker
        self.config = dict(config) if config is not None else get_default_config()

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    def group(
        self, records: Sequence[ControlRecord], findings: Sequence[dict]
    ) -> dict[str, _FamilyGroup]:
        """Partition records by producer family, then by id.

        Both levels keep first-occurrence order so output is reproducible.
        """
        if len(records) != len(findings):
            raise ValueError(
                f"records and findings must pair up positionally "
                f"({len(records)} records, {len(findings)} findings)"
            )

        # Synthesized families live only as long as this run.
        fallback_cache: dict[str, ProducerFamily] = {}
        groups: dict[str, _FamilyGroup] = {}
        for record, finding in zip(records, findings):
            family = self.invoker.registry.family_for(finding.get("ProductArn", ""), fallback_cache)
            if family.name not in groups:
                groups[family.name] = _FamilyGroup(family=family)
            groups[family.name].add(record, finding)
        return groups

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def _product_name(self, family: ProducerFamily, findings: list[dict]) -> str:
        return self.invoker.resolve(
            family,
            findings,
            "product_name",
            lambda: encode(product_namespace(findings[0].get("ProductArn", ""))),
        )

    def _merge(
        self,
        control_id: str,
        product_name: str,
        family: ProducerFamily,
        members: list[tuple[ControlRecord, dict]],
    ) -> HdfControl:
        group = [record for record, _ in members]
        findings = [finding for _, finding in members]

        titles = unique(r.title for r in group)
        desc = self.invoker.resolve(
            family,
            group,
            "desc",
            lambda: "\n".join(unique(r.desc for r in group)),
        )

        return HdfControl(
            id=control_id,
            title=f"{product_name}: {';'.join(titles)}",
            desc=desc,
            impact=max(r.impact for r in group),
            tags={
                self.config["policy_tag_key"]: unique(t for r in group for t in r.nist_tags)
            },
            descriptions=unique(d for r in group for d in r.descriptions if d is not None and d.data),
            refs=unique(ref for r in group for ref in r.refs if ref is not None and ref.url),
            source_location={},
            code=json.dumps({"Findings": findings}, indent=2),
            results=unique(res for r in group for res in r.results if res is not None),
        )

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def consolidate(
        self, records: Sequence[ControlRecord], findings: Sequence[dict]
    ) -> list[HdfControl]:
        """Return one canonical control per (family, id) group.

        *records* and *findings* must be aligned: ``records[i]`` was produced
        from ``findings[i]``.
        """
        groups = self.group(records, findings)

        # id -> families emitting it
        emitters: dict[str, set[str]] = defaultdict(set)
        for name, family_group in groups.items():
            for control_id in family_group.by_id:
                emitters[control_id].add(name)

        controls: list[HdfControl] = []
        for family_group in groups.values():
            for control_id, members in family_group.by_id.items():
                family = family_group.family
                product_name = self._product_name(family, [f for _, f in members])
                final_id = control_id
                if len(emitters[control_id]) > 1:
                    final_id = f"[{product_name}] {control_id}"
                controls.append(self._merge(final_id, product_name, family, members))

        logger.info(
            "Consolidated %d sub-findings into %d controls across %d producer families",
            len(records),
            len(controls),
            len(groups),
        )
        return controls


__all__ = ["Consolidator"]
