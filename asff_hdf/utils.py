"""
Helpers for walking ASFF documents.

ASFF keys are not plain identifiers: ``ProductFields`` keys routinely contain
``/`` and ``:`` (``aws/securityhub/CompanyName``,
``RelatedAWSResources:0/type``).  Paths are therefore split on ``.`` only,
with ``[n]`` suffixes indexing into lists::

    get_path(finding, "Compliance.Status")
    get_path(finding, "Types[0]")
    get_path(finding, "ProductFields.aws/securityhub/ProductName")
"""

from __future__ import annotations

import html
import re
from typing import Any, Hashable, Iterable, TypeVar

from .exceptions import MissingFieldError

T = TypeVar("T")

_MISSING = object()
_TOKEN_RE = re.compile(r"([^.\[\]]+)|\[(\d+)\]")


def _tokens(path: str) -> list[Any]:
    tokens: list[Any] = []
    for key, index in _TOKEN_RE.findall(path):
        tokens.append(int(index) if index else key)
    return tokens


def _walk(data: Any, path: str) -> Any:
    node = data
    for token in _tokens(path):
        if isinstance(token, int):
            if not isinstance(node, (list, tuple)) or token >= len(node):
                return _MISSING
            node = node[token]
        else:
            if not isinstance(node, dict) or token not in node:
                return _MISSING
            node = node[token]
    return node


def get_path(data: Any, path: str, default: Any = None) -> Any:
    """Return the value at *path*, or *default* when any segment is absent."""
    value = _walk(data, path)
    return default if value is _MISSING else value


def has_path(data: Any, path: str) -> bool:
    """Return True when every segment of *path* exists (even if null)."""
    return _walk(data, path) is not _MISSING


def require_path(data: Any, path: str, context: str = "") -> Any:
    """Like :func:`get_path` but raise :class:`MissingFieldError` when absent."""
    value = _walk(data, path)
    if value is _MISSING or value is None:
        raise MissingFieldError(path, context)
    return value


def encode(value: Any) -> str:
    """HTML-entity encode free text; ``None`` encodes to an empty string."""
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def unique(items: Iterable[T]) -> list[T]:
    """De-duplicate *items* keeping the first occurrence of each."""
    seen: set[Hashable] = set()
    out: list[T] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out
