"""
Supporting documents for producer overrides.

Two kinds of reference data enrich what a bare ASFF finding says:

  1. **Standards catalogs** - the JSON returned by Security Hub's
     ``DescribeStandardsControls`` for every enabled standard.  Each catalog
     is a ``{"Controls": [...]}`` document; all catalogs are flattened into
     one sequence of :class:`CatalogControl`.
  2. **Config rule mapping** - a packaged CSV correlating AWS Config rule
     names with NIST SP 800-53 control identifiers.  Loaded once per mapper
     instance, independent of the catalogs.

Usage:
    controls = load_standards_controls([fsbp_json, cis_json])
    mapping = ConfigRuleMapping.load()
    mapping.tags_for("securityhub-s3-bucket-public-read-prohibited-a1b2c3")
"""

from __future__ import annotations

import csv
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from .exceptions import MappingTableError, SupportingDocumentError
from .utils import unique

logger = logging.getLogger(__name__)

DEFAULT_MAPPING_FILE = Path(__file__).resolve().parent / "data" / "aws-config-nist-mapping.csv"

# ---------------------------------------------------------------------------
# Standards catalogs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CatalogControl:
    """A single control from a standards catalog."""

    standards_control_arn: str
    control_id: str
    title: str
    severity_rating: str
    standard: str  # identity of the owning catalog

    @classmethod
    def from_dict(cls, raw: dict, document_index: int) -> "CatalogControl":
        arn = str(raw.get("StandardsControlArn") or "")
        # arn:aws:securityhub:<region>:<acct>:control/<standard>/v/<version>/<control>
        standard = arn.rsplit("/", 1)[0] if "/" in arn else f"document-{document_index}"
        return cls(
            standards_control_arn=arn,
            control_id=str(raw.get("ControlId") or ""),
            title=str(raw.get("Title") or ""),
            severity_rating=str(raw.get("SeverityRating") or ""),
            standard=standard,
        )


def load_standards_controls(
    documents: Optional[Sequence[Union[str, bytes, dict]]],
    producer: str = "Security Hub",
) -> tuple[CatalogControl, ...]:
    """Parse and flatten every catalog in *documents*.

    ``None`` or anything that is not a list of documents yields no controls,
    which overrides treat as "no richer context available".

    Raises
    ------
    SupportingDocumentError
        If a document is not valid JSON or carries no ``Controls`` list.
    """
    if documents is None:
        return ()
    if isinstance(documents, (str, bytes)) or not isinstance(documents, Sequence):
        logger.warning(
            "Ignoring supporting docs for %s: expected a list of documents, got %s",
            producer,
            type(documents).__name__,
        )
        return ()

    controls: list[CatalogControl] = []
    for index, document in enumerate(documents):
        if isinstance(document, dict):
            parsed: Any = document
        else:
            try:
                parsed = json.loads(document)
            except (TypeError, ValueError) as exc:
                raise SupportingDocumentError(producer, index, f"Exception: {exc}") from exc

        raw_controls = parsed.get("Controls") if isinstance(parsed, dict) else None
        if not isinstance(raw_controls, list):
            raise SupportingDocumentError(producer, index, "no 'Controls' list in document")

        controls.extend(
            CatalogControl.from_dict(raw, index)
            for raw in raw_controls
            if isinstance(raw, dict)
        )

    logger.info(
        "Loaded %d catalog controls from %d %s standards documents",
        len(controls),
        len(documents),
        producer,
    )
    return tuple(controls)


# ---------------------------------------------------------------------------
# Config rule -> NIST mapping
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConfigRuleMappingItem:
    config_rule_name: str
    nist_ids: tuple[str, ...]
    source_identifier: str = ""
    revision: str = ""


class ConfigRuleMapping:
    """Correlation table from AWS Config rule names to NIST control ids."""

    NAME_COLUMN = "AwsConfigRuleName"
    NIST_COLUMN = "NIST-ID"
    SOURCE_COLUMN = "AwsConfigRuleSourceIdentifier"
    REVISION_COLUMN = "Rev"

    def __init__(self, items: Iterable[ConfigRuleMappingItem]) -> None:
        self.items: tuple[ConfigRuleMappingItem, ...] = tuple(items)

    def __len__(self) -> int:
        return len(self.items)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "ConfigRuleMapping":
        """Read the CSV at *path* (the packaged table by default).

        Raises
        ------
        MappingTableError
            If the file is missing, lacks a required column, or has a row
            without a rule name or NIST ids.
        """
        csv_path = Path(path) if path else DEFAULT_MAPPING_FILE
        if not csv_path.is_file():
            raise MappingTableError(f"Config rule mapping not found: {csv_path}")

        items: list[ConfigRuleMappingItem] = []
        with open(csv_path, "r", encoding="utf-8", newline="") as fh:
            reader = csv.DictReader(fh)
            columns = reader.fieldnames or []
            for required in (cls.NAME_COLUMN, cls.NIST_COLUMN):
                if required not in columns:
                    raise MappingTableError(
                        f"{csv_path}: missing column {required!r} (found {columns})"
                    )
            # Header is line 1.
            for line_no, row in enumerate(reader, start=2):
                name = (row.get(cls.NAME_COLUMN) or "").strip()
                nist = (row.get(cls.NIST_COLUMN) or "").strip()
                if not name or not nist:
                    raise MappingTableError(
                        f"{csv_path}:{line_no}: row needs both "
                        f"{cls.NAME_COLUMN} and {cls.NIST_COLUMN}"
                    )
                items.append(
                    ConfigRuleMappingItem(
                        config_rule_name=name,
                        nist_ids=tuple(t.strip() for t in nist.split("|") if t.strip()),
                        source_identifier=(row.get(cls.SOURCE_COLUMN) or "").strip(),
                        revision=(row.get(cls.REVISION_COLUMN) or "").strip(),
                    )
                )

        logger.info("Loaded %d config rule mappings from %s", len(items), csv_path)
        return cls(items)

    def tags_for(self, rule_name: Any) -> list[str]:
        """Return the NIST ids of every rule whose name occurs in *rule_name*.

        Security Hub names its managed Config rules
        ``securityhub-<rule-name>-<suffix>``, so the table's rule name is
        matched as a substring.  Non-string input matches nothing.
        """
        if not isinstance(rule_name, str) or not rule_name:
            return []
        matches = [item for item in self.items if item.config_rule_name in rule_name]
        return unique(tag for item in matches for tag in item.nist_ids)


__all__ = [
    "DEFAULT_MAPPING_FILE",
    "CatalogControl",
    "ConfigRuleMapping",
    "ConfigRuleMappingItem",
    "load_standards_controls",
]
