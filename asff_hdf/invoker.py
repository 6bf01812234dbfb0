"""
External Override Invoker.

Resolves a field through the producer's override when one exists and through
the caller's default otherwise:

    invoker.resolve(product_arn, finding, "finding_id", lambda: encode(generator_id))

Unmatched producers never raise; they degrade to the default.  Failures
raised by an override itself are propagated unchanged.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence, Union

from .producers import OVERRIDE_NAMES, ProducerFamily, ProducerRegistry
from .supporting_docs import ConfigRuleMapping

logger = logging.getLogger(__name__)

_EMPTY_CONTEXT: Mapping[str, Any] = MappingProxyType({})


class OverrideInvoker:
    """Dispatches override calls to the matching producer family.

    Parameters
    ----------
    registry : ProducerRegistry
        Families to match against.
    contexts : mapping of family name -> supporting-document context
        Built once and shared read-only across every call of a run.
    """

    def __init__(
        self,
        registry: ProducerRegistry,
        contexts: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> None:
        self.registry = registry
        self._contexts: dict[str, Mapping[str, Any]] = {
            name: MappingProxyType(dict(context))
            for name, context in (contexts or {}).items()
        }

    @classmethod
    def from_supporting_docs(
        cls,
        registry: ProducerRegistry,
        standards: Optional[Sequence[str]] = None,
        config_mapping: Optional[ConfigRuleMapping] = None,
    ) -> "OverrideInvoker":
        """Build every family's context via its ``supporting_docs`` builder.

        A builder failure (e.g. :class:`SupportingDocumentError`) is raised
        immediately; it concerns only the family whose builder raised.
        """
        contexts: dict[str, Mapping[str, Any]] = {}
        for family in registry:
            builder = family.overrides.supporting_docs
            if builder is None:
                continue
            contexts[family.name] = builder(standards, config_mapping)
            logger.debug("Built supporting-document context for %s", family.name)
        return cls(registry, contexts)

    def context_for(self, family: ProducerFamily) -> Mapping[str, Any]:
        return self._contexts.get(family.name, _EMPTY_CONTEXT)

    def resolve(
        self,
        producer: Union[str, ProducerFamily],
        subject: Any,
        override_name: str,
        default: Any,
    ) -> Any:
        """Return the override's result for *subject*, else *default*.

        *producer* is a ``ProductArn`` string or an already-resolved family
        (consolidation passes synthesized families this way).  A callable
        *default* is invoked with no arguments only when it is needed.
        """
        if override_name not in OVERRIDE_NAMES:
            raise ValueError(
                f"Unknown override {override_name!r}. "
                f"Must be one of {sorted(OVERRIDE_NAMES)}."
            )

        family = producer if isinstance(producer, ProducerFamily) else self.registry.match(producer)
        override = family.overrides.get(override_name) if family is not None else None

        if override is not None:
            logger.debug("Dispatching %s to %s override", override_name, family.name)
            return override(subject, self.context_for(family))

        return default() if callable(default) else default


__all__ = ["OverrideInvoker"]
