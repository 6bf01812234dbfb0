"""ASFF to HDF mapper: normalizes Security Hub findings into canonical controls."""

from asff_hdf.consolidation import Consolidator
from asff_hdf.converter import AsffMapper, fix_file_input
from asff_hdf.exceptions import (
    AsffMapperError,
    ConfigError,
    FindingTransformError,
    InvalidInputError,
    MappingTableError,
    MissingFieldError,
    SupportingDocumentError,
)
from asff_hdf.invoker import OverrideInvoker
from asff_hdf.models import ControlRecord
from asff_hdf.producers import OverrideSet, ProducerFamily, ProducerRegistry
from asff_hdf.schemas import HdfControl, HdfExecution, ResultStatus
from asff_hdf.supporting_docs import CatalogControl, ConfigRuleMapping, load_standards_controls
from asff_hdf.transformers import FieldTransformers
from asff_hdf.version import __version__

__all__ = [
    "AsffMapper",
    "AsffMapperError",
    "CatalogControl",
    "ConfigError",
    "ConfigRuleMapping",
    "Consolidator",
    "ControlRecord",
    "FieldTransformers",
    "FindingTransformError",
    "HdfControl",
    "HdfExecution",
    "InvalidInputError",
    "MappingTableError",
    "MissingFieldError",
    "OverrideInvoker",
    "OverrideSet",
    "ProducerFamily",
    "ProducerRegistry",
    "ResultStatus",
    "SupportingDocumentError",
    "__version__",
    "fix_file_input",
    "load_standards_controls",
]
