# flowcheck/catalog/client.py
"""
Catalog access: read-only node-type metadata.

`Catalog` is the protocol the validator consumes. `StaticCatalog` serves
descriptors from memory or a JSON/YAML file. `CachingCatalog` wraps any
catalog for one validation run: each distinct type is resolved once and a
failing lookup is treated as not-found.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from flowcheck.errors import CatalogError, WorkflowLoadError
from flowcheck.models import Descriptor
from flowcheck.catalog.normalizer import type_variations
from flowcheck.utils.io import PathLike, load_any
from flowcheck.utils.logger import get_logger

logger = get_logger("catalog")


class Catalog(Protocol):
    def resolve(self, node_type: str) -> Optional[Descriptor]:
        ...

    def current_version(self, node_type: str) -> Optional[float]:
        ...


class StaticCatalog:
    """In-memory catalog keyed by the exact `type` of each descriptor."""

    def __init__(self, descriptors: Iterable[Descriptor] = ()):
        self._by_type: Dict[str, Descriptor] = {d.type: d for d in descriptors}

    @classmethod
    def from_data(cls, data: Any) -> "StaticCatalog":
        """
        Accepts a list of descriptor dicts, a mapping type -> descriptor dict,
        or {"nodes": [...]}.
        """
        if isinstance(data, dict) and isinstance(data.get("nodes"), list):
            data = data["nodes"]
        if isinstance(data, dict):
            items = [dict(v, type=v.get("type", k)) for k, v in data.items() if isinstance(v, dict)]
        elif isinstance(data, list):
            items = [d for d in data if isinstance(d, dict)]
        else:
            raise CatalogError(f"Unsupported catalog layout: {type(data).__name__}")
        try:
            return cls(Descriptor.from_dict(d) for d in items)
        except KeyError as e:
            raise CatalogError(f"Catalog entry missing field {e}") from e

    @classmethod
    def from_file(cls, path: PathLike) -> "StaticCatalog":
        try:
            data = load_any(path)
        except WorkflowLoadError as e:
            raise CatalogError(str(e)) from e
        cat = cls.from_data(data)
        logger.info(f"Loaded {len(cat)} node types from {path}")
        return cat

    def resolve(self, node_type: str) -> Optional[Descriptor]:
        return self._by_type.get(node_type)

    def current_version(self, node_type: str) -> Optional[float]:
        d = self.resolve(node_type)
        return d.current_version if d else None

    def list_types(self) -> List[str]:
        return list(self._by_type)

    def __len__(self) -> int:
        return len(self._by_type)


class CachingCatalog:
    """Per-run memo over another catalog. Lookup failures become not-found."""

    def __init__(self, inner: Optional[Catalog]):
        self.inner = inner
        self._cache: Dict[str, Optional[Descriptor]] = {}
        self._versions: Dict[str, Optional[float]] = {}
        self.failures: Dict[str, str] = {}

    def resolve(self, node_type: str) -> Optional[Descriptor]:
        if node_type in self._cache:
            return self._cache[node_type]
        desc = None
        if self.inner is not None:
            try:
                desc = self.inner.resolve(node_type)
            except Exception as e:
                logger.warning(f"Catalog lookup for '{node_type}' failed: {e}")
                self.failures[node_type] = str(e)
                desc = None
        self._cache[node_type] = desc
        return desc

    def current_version(self, node_type: str) -> Optional[float]:
        """The catalog's answer first, the descriptor's `currentVersion` when it has none."""
        if node_type in self._versions:
            return self._versions[node_type]
        d = self.resolve(node_type)
        version = None
        if d is not None and self.inner is not None:
            try:
                version = self.inner.current_version(node_type)
            except Exception as e:
                logger.warning(f"Catalog version lookup for '{node_type}' failed: {e}")
        if version is None and d is not None:
            version = d.current_version
        self._versions[node_type] = version
        return version

    def list_types(self) -> List[str]:
        lister = getattr(self.inner, "list_types", None)
        return list(lister()) if callable(lister) else []

    def lookup(self, node_type: str) -> Tuple[Optional[Descriptor], Optional[str]]:
        """Try every spelling of `node_type`; returns (descriptor, matched spelling)."""
        for candidate in type_variations(node_type):
            d = self.resolve(candidate)
            if d is not None:
                return d, candidate
        return None, None

    def prefetch(self, node_types: Iterable[str], max_workers: int = 4) -> None:
        """Resolve distinct types concurrently; order does not affect results."""
        pending = []
        for t in dict.fromkeys(node_types):
            pending.extend(v for v in type_variations(t) if v not in self._cache)
        pending = list(dict.fromkeys(pending))
        if not pending or self.inner is None:
            return
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(self._safe_inner, pending))
        for t, (desc, err) in zip(pending, results):
            self._cache[t] = desc
            if err:
                self.failures[t] = err

    def _safe_inner(self, node_type: str) -> Tuple[Optional[Descriptor], Optional[str]]:
        try:
            return self.inner.resolve(node_type), None
        except Exception as e:
            logger.warning(f"Catalog lookup for '{node_type}' failed: {e}")
            return None, str(e)
