"""
ASFF to HDF conversion entry point.

Usage:
    mapper = AsffMapper(asff_json, standards=[fsbp_controls_json], meta={"name": "Prod"})
    execution = mapper.to_hdf()          # pydantic HdfExecution
    document = mapper.to_dict()          # plain JSON-ready dict

Flow:
    1. The envelope is normalized to ``{"Findings": [...]}``.
    2. Every finding becomes a ControlRecord (FieldTransformers).
    3. Records and their raw findings are consolidated into canonical
       controls (Consolidator) attached to a single profile.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

from .config_loader import build_config
from .consolidation import Consolidator
from .exceptions import AsffMapperError, FindingTransformError, InvalidInputError
from .invoker import OverrideInvoker
from .models import ControlRecord
from .producers import ProducerRegistry
from .schemas import HdfExecution, HdfPlatform, HdfProfile
from .supporting_docs import ConfigRuleMapping
from .transformers import FieldTransformers
from .version import __version__

logger = logging.getLogger(__name__)

# Failures an override or transformer may raise on a malformed finding.
_FINDING_ERRORS = (AsffMapperError, AttributeError, KeyError, TypeError, ValueError)


def fix_file_input(asff: Union[str, bytes, Mapping[str, Any]]) -> dict:
    """Parse *asff* and wrap a bare finding as ``{"Findings": [finding]}``.

    Raises
    ------
    InvalidInputError
        If the input is not JSON, not an object, or ``Findings`` is not a list.
    """
    if isinstance(asff, (str, bytes)):
        try:
            data = json.loads(asff)
        except ValueError as exc:
            raise InvalidInputError(f"ASFF input is not valid JSON: {exc}") from exc
    else:
        data = asff

    if not isinstance(data, Mapping):
        raise InvalidInputError(
            f"ASFF input must be a JSON object, got {type(data).__name__}"
        )
    if "Findings" not in data:
        data = {"Findings": [data]}
    if not isinstance(data["Findings"], list):
        raise InvalidInputError("'Findings' must be a list")
    return dict(data)


class AsffMapper:
    """Converts an ASFF findings document into an HDF execution.

    Parameters
    ----------
    asff_json : str, bytes or mapping
        ``{"Findings": [...]}`` or a single finding.
    standards : list of str, optional
        Security Hub ``DescribeStandardsControls`` output, one JSON document
        per enabled standard.
    meta : mapping, optional
        ``name`` / ``title`` overriding the profile defaults.
    config : mapping, optional
        Flat configuration overrides (see ``config_loader``).
    config_file : path, optional
        YAML configuration file.
    registry : ProducerRegistry, optional
        Producer families; the built-in ones by default.
    """

    def __init__(
        self,
        asff_json: Union[str, bytes, Mapping[str, Any]],
        standards: Optional[Sequence[str]] = None,
        meta: Optional[Mapping[str, Any]] = None,
        config: Optional[Mapping[str, Any]] = None,
        config_file: Optional[Union[str, Path]] = None,
        registry: Optional[ProducerRegistry] = None,
    ) -> None:
        self.data = fix_file_input(asff_json)
        self.meta = dict(meta) if meta else {}
        self.config = build_config(config_file=config_file, overrides=config, meta=meta)
        self.registry = registry if registry is not None else ProducerRegistry()
        self.config_mapping = ConfigRuleMapping.load(self.config["mapping_file"])
        self.invoker = OverrideInvoker.from_supporting_docs(
            self.registry, standards, self.config_mapping
        )
        self.transformers = FieldTransformers(self.invoker, self.config)
        self.consolidator = Consolidator(self.invoker, self.config)
        self.failures: list[FindingTransformError] = []

        logger.info(
            "ASFF mapper ready: %d findings, %d producer families, %d config rule mappings",
            len(self.findings),
            len(self.registry),
            len(self.config_mapping),
        )

    @property
    def findings(self) -> list:
        return self.data["Findings"]

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def transform_findings(self) -> tuple[list[ControlRecord], list[dict]]:
        """Transform every finding; return records and their aligned findings.

        With ``isolate_finding_errors`` a failing finding is logged, recorded
        on :attr:`failures` and left out of both lists.  Otherwise the first
        failure is raised as :class:`FindingTransformError`.
        """
        self.failures = []
        records: list[ControlRecord] = []
        kept: list[dict] = []

        for index, finding in enumerate(self.findings):
            try:
                if not isinstance(finding, dict):
                    raise InvalidInputError(
                        f"finding must be an object, got {type(finding).__name__}"
                    )
                record = self.transformers.transform(finding)
            except _FINDING_ERRORS as exc:
                error = FindingTransformError(
                    index,
                    exc,
                    product_arn=finding.get("ProductArn") if isinstance(finding, dict) else None,
                    generator_id=finding.get("GeneratorId") if isinstance(finding, dict) else None,
                )
                if not self.config["isolate_finding_errors"]:
                    raise error from exc
                logger.warning("Skipping finding: %s", error)
                self.failures.append(error)
                continue
            records.append(record)
            kept.append(finding)

        return records, kept

    def to_hdf(self) -> HdfExecution:
        records, findings = self.transform_findings()
        controls = self.consolidator.consolidate(records, findings)

        profile = HdfProfile(
            name=self.config["profile_name"],
            title=self.config["profile_title"],
            controls=controls,
        )
        execution = HdfExecution(
            platform=HdfPlatform(
                name=self.config["platform_name"],
                release=self.config["platform_release"],
            ),
            version=__version__,
            profiles=[profile],
        )

        logger.info(
            "Converted %d findings into %d controls (%d skipped)",
            len(self.findings),
            len(controls),
            len(self.failures),
        )
        return execution

    def to_dict(self) -> dict:
        """Return the HDF execution as a JSON-ready dict (nulls omitted)."""
        return self.to_hdf().model_dump(mode="json", exclude_none=True)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


__all__ = ["AsffMapper", "fix_file_input"]
