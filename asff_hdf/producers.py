"""
Producer Dispatch Table.

Several products publish findings through Security Hub in the same ASFF
envelope but with their own conventions for ids, titles, severity and
evidence.  Each product is a :class:`ProducerFamily`: a pattern matched
against ``ProductArn`` plus an :class:`OverrideSet` of functions that replace
the generic field computation for that product.

Families are tested in registration order; first match wins.  Products with
no registered family get a family synthesized from the ARN's product
namespace (``product/<vendor>/<product>``) so their findings still group
together during consolidation.

Override functions take ``(subject, context)``:
    subject  - one finding, or for ``product_name`` the list of findings that
               share a control id, or for ``desc`` the list of control records
    context  - the family's supporting-document context (may be empty)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Pattern, Sequence

from .severity import INFORMATIONAL, MEDIUM, default_severity
from .supporting_docs import CatalogControl, ConfigRuleMapping, load_standards_controls
from .utils import encode, get_path, has_path, require_path

logger = logging.getLogger(__name__)

FindingOverride = Callable[[dict, Mapping[str, Any]], Any]
GroupOverride = Callable[[Sequence[Any], Mapping[str, Any]], Any]
ContextBuilder = Callable[[Optional[Sequence[str]], Optional[ConfigRuleMapping]], dict]

FIREWALL_MANAGER_PATTERN = re.compile(r"arn:.+:securityhub:.+:.*:product/aws/firewall-manager")
SECURITYHUB_PATTERN = re.compile(r"arn:.+:securityhub:.+:.*:product/aws/securityhub")
PROWLER_PATTERN = re.compile(r"arn:.+:securityhub:.+:.*:product/prowler/prowler")

CONFIG_RULE_TYPE = "AWS::Config::ConfigRule"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OverrideSet:
    """Optional per-field overrides for one producer family."""

    finding_id: Optional[FindingOverride] = None
    finding_title: Optional[FindingOverride] = None
    finding_impact: Optional[FindingOverride] = None
    finding_nist_tag: Optional[FindingOverride] = None
    product_name: Optional[GroupOverride] = None
    subfindings_code_desc: Optional[FindingOverride] = None
    desc: Optional[GroupOverride] = None
    supporting_docs: Optional[ContextBuilder] = None

    def get(self, name: str) -> Optional[Callable[..., Any]]:
        if name not in OVERRIDE_NAMES:
            raise ValueError(
                f"Unknown override {name!r}. Must be one of {sorted(OVERRIDE_NAMES)}."
            )
        return getattr(self, name)


# supporting_docs builds context; it is never dispatched to directly.
OVERRIDE_NAMES = frozenset(f.name for f in fields(OverrideSet)) - {"supporting_docs"}


@dataclass(frozen=True)
class ProducerFamily:
    """A producer-identity pattern and the overrides that apply to it."""

    name: str
    pattern: Pattern[str]
    overrides: OverrideSet = field(default_factory=OverrideSet)
    synthesized: bool = False

    def matches(self, product_arn: Any) -> bool:
        return isinstance(product_arn, str) and self.pattern.search(product_arn) is not None


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def product_namespace(product_arn: str) -> str:
    """``arn:...:product/aws/guardduty`` -> ``aws/guardduty``."""
    segment = str(product_arn).split(":")[-1]
    parts = segment.split("/")
    if len(parts) >= 3:
        return f"{parts[1]}/{parts[2]}"
    return segment


def synthesize_family(product_arn: str) -> ProducerFamily:
    """Build an override-free family for an unregistered product."""
    namespace = product_namespace(product_arn)
    pattern = re.compile(rf"arn:.+:securityhub:.+:.*:product/{re.escape(namespace)}")
    return ProducerFamily(name=namespace, pattern=pattern, synthesized=True)


def _company_product_name(finding: dict) -> Optional[str]:
    company = get_path(finding, "ProductFields.aws/securityhub/CompanyName")
    product = get_path(finding, "ProductFields.aws/securityhub/ProductName")
    if company and product:
        return f"{company} {product}"
    return None


def _first(findings: Sequence[dict]) -> dict:
    if not findings:
        raise ValueError("product_name needs at least one finding")
    return findings[0]


# ---------------------------------------------------------------------------
# AWS Firewall Manager
# ---------------------------------------------------------------------------


def _firewall_manager_finding_id(finding: dict, context: Mapping[str, Any]) -> str:
    return encode(require_path(finding, "Title", "Firewall Manager id"))


def _firewall_manager_product_name(findings: Sequence[dict], context: Mapping[str, Any]) -> str:
    first = _first(findings)
    name = _company_product_name(first) or product_namespace(first.get("ProductArn", ""))
    return encode(name)


# ---------------------------------------------------------------------------
# Prowler
# ---------------------------------------------------------------------------


def _prowler_subfindings_code_desc(finding: dict, context: Mapping[str, Any]) -> str:
    return encode(get_path(finding, "Description"))


def _prowler_finding_id(finding: dict, context: Mapping[str, Any]) -> str:
    # prowler-<check id>
    generator_id = str(require_path(finding, "GeneratorId", "Prowler id"))
    return encode(generator_id[generator_id.find("-") + 1:])


def _prowler_product_name(findings: Sequence[dict], context: Mapping[str, Any]) -> str:
    first = _first(findings)
    name = get_path(first, "ProductFields.ProviderName") or product_namespace(
        first.get("ProductArn", "")
    )
    return encode(name)


# ---------------------------------------------------------------------------
# AWS Security Hub
# ---------------------------------------------------------------------------


def _securityhub_supporting_docs(
    standards: Optional[Sequence[str]],
    config_mapping: Optional[ConfigRuleMapping],
) -> dict:
    return {
        "controls": load_standards_controls(standards, producer="Security Hub"),
        "config_mapping": config_mapping,
    }


def _corresponding_control(
    controls: Sequence[CatalogControl], finding: dict
) -> Optional[CatalogControl]:
    arn = get_path(finding, "ProductFields.StandardsControlArn")
    if not arn:
        return None
    return next((c for c in controls if c.standards_control_arn == arn), None)


def _securityhub_finding_id(finding: dict, context: Mapping[str, Any]) -> str:
    control = _corresponding_control(context.get("controls") or (), finding)
    if control is not None and control.control_id:
        output = control.control_id
    elif has_path(finding, "ProductFields.ControlId"):  # consolidated control findings
        output = get_path(finding, "ProductFields.ControlId")
    elif has_path(finding, "ProductFields.RuleId"):  # CIS
        output = get_path(finding, "ProductFields.RuleId")
    else:
        output = str(require_path(finding, "GeneratorId", "Security Hub id")).split("/")[-1]
    return encode(output)


def _securityhub_finding_impact(finding: dict, context: Mapping[str, Any]) -> Any:
    control = _corresponding_control(context.get("controls") or (), finding)
    if control is not None and control.severity_rating:
        return control.severity_rating
    impact = default_severity(finding)
    # Without a catalog Security Hub under-reports: controls that are not
    # informational are labelled INFORMATIONAL.
    if impact == INFORMATIONAL:
        return MEDIUM
    return impact


def _related_resource(finding: dict, attribute: str) -> Any:
    key = f"RelatedAWSResources:0/{attribute}"
    value = get_path(finding, f"ProductFields.{key}")
    if value is None:
        value = get_path(finding, key)
    return value


def _securityhub_finding_nist_tag(finding: dict, context: Mapping[str, Any]) -> list[str]:
    if _related_resource(finding, "type") != CONFIG_RULE_TYPE:
        return []
    mapping: Optional[ConfigRuleMapping] = context.get("config_mapping")
    if mapping is None:
        return []
    return mapping.tags_for(_related_resource(finding, "name"))


def _securityhub_finding_title(finding: dict, context: Mapping[str, Any]) -> str:
    control = _corresponding_control(context.get("controls") or (), finding)
    if control is not None and control.title:
        return encode(control.title)
    return encode(get_path(finding, "Title"))


def _standard_display_name(finding: dict) -> Optional[str]:
    """Name and version of the standard a control finding belongs to.

    ``.../control/aws-foundational-security-best-practices/v/1.0.0/ACM.1``
    gives ``AWS Foundational Security Best Practices v1.0.0`` when
    ``Types[0]`` spells the standard out, else the title-cased ARN slug.
    """
    arn = get_path(finding, "ProductFields.StandardsControlArn")
    if not isinstance(arn, str) or arn.count("/") < 4:
        return None
    parts = arn.split("/")
    arn_name = parts[-4].replace("-", " ")
    version = parts[-2]

    type_name = str(get_path(finding, "Types[0]") or "").split("/")[-1].replace("-", " ")
    if type_name.lower() == arn_name.lower():
        name = type_name
    else:
        name = " ".join(word[:1].upper() + word[1:] for word in arn_name.split())
    return f"{name} v{version}"


def _securityhub_product_name(findings: Sequence[dict], context: Mapping[str, Any]) -> str:
    first = _first(findings)
    name = (
        _standard_display_name(first)
        or _company_product_name(first)
        or product_namespace(first.get("ProductArn", ""))
    )
    return encode(name)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def default_families() -> list[ProducerFamily]:
    """The registered families, in match order."""
    return [
        ProducerFamily(
            name="aws/firewall-manager",
            pattern=FIREWALL_MANAGER_PATTERN,
            overrides=OverrideSet(
                finding_id=_firewall_manager_finding_id,
                product_name=_firewall_manager_product_name,
            ),
        ),
        ProducerFamily(
            name="aws/securityhub",
            pattern=SECURITYHUB_PATTERN,
            overrides=OverrideSet(
                supporting_docs=_securityhub_supporting_docs,
                finding_id=_securityhub_finding_id,
                finding_impact=_securityhub_finding_impact,
                finding_nist_tag=_securityhub_finding_nist_tag,
                finding_title=_securityhub_finding_title,
                product_name=_securityhub_product_name,
            ),
        ),
        ProducerFamily(
            name="prowler/prowler",
            pattern=PROWLER_PATTERN,
            overrides=OverrideSet(
                subfindings_code_desc=_prowler_subfindings_code_desc,
                finding_id=_prowler_finding_id,
                product_name=_prowler_product_name,
            ),
        ),
    ]


class ProducerRegistry:
    """Ordered list of producer families; first match wins."""

    def __init__(self, families: Optional[Iterable[ProducerFamily]] = None) -> None:
        self._families: list[ProducerFamily] = []
        for family in default_families() if families is None else families:
            self.register(family)

    def register(self, family: ProducerFamily) -> None:
        if any(f.name == family.name for f in self._families):
            raise ValueError(f"Producer family {family.name!r} is already registered")
        self._families.append(family)

    def __iter__(self) -> Iterator[ProducerFamily]:
        return iter(self._families)

    def __len__(self) -> int:
        return len(self._families)

    def get(self, name: str) -> Optional[ProducerFamily]:
        return next((f for f in self._families if f.name == name), None)

    def match(self, product_arn: Any) -> Optional[ProducerFamily]:
        """Return the first registered family matching *product_arn*."""
        return next((f for f in self._families if f.matches(product_arn)), None)

    def family_for(
        self, product_arn: str, cache: dict[str, ProducerFamily]
    ) -> ProducerFamily:
        """Like :meth:`match`, synthesizing a family for unregistered products.

        Synthesized families are memoized in *cache*, which callers scope to
        a single conversion run.
        """
        family = self.match(product_arn)
        if family is not None:
            return family
        namespace = product_namespace(product_arn)
        if namespace not in cache:
            cache[namespace] = synthesize_family(product_arn)
            logger.debug("Synthesized producer family %r for %s", namespace, product_arn)
        return cache[namespace]


__all__ = [
    "FIREWALL_MANAGER_PATTERN",
    "OVERRIDE_NAMES",
    "PROWLER_PATTERN",
    "SECURITYHUB_PATTERN",
    "OverrideSet",
    "ProducerFamily",
    "ProducerRegistry",
    "default_families",
    "product_namespace",
    "synthesize_family",
]
