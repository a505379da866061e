# flowcheck/utils/io.py
"""Reading workflow and catalog documents, writing reports."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Union

try:
    import yaml  # optional
except ImportError:  # pragma: no cover
    yaml = None

from flowcheck.errors import WorkflowLoadError

PathLike = Union[str, Path]

JSON_SUFFIXES = (".json",)
YAML_SUFFIXES = (".yaml", ".yml")
_PARSE_ERRORS = (ValueError,) + ((yaml.YAMLError,) if yaml is not None else ())


def list_files(folder: PathLike, pattern: str = "*.json") -> list[Path]:
    """Files in `folder` matching `pattern`, sorted by name. Not recursive."""
    return sorted(Path(folder).glob(pattern))


def _parse(p: Path, text: str) -> Any:
    if p.suffix.lower() in JSON_SUFFIXES:
        return json.loads(text)
    if yaml is None:
        raise WorkflowLoadError(f"Cannot load {p}: PyYAML is not installed (`pip install pyyaml`)")
    return yaml.safe_load(text)


def load_any(path: PathLike) -> Any:
    """
    Load a JSON or YAML document, chosen by extension.

    Raises:
        WorkflowLoadError: unsupported extension, unreadable file or bad syntax
    """
    p = Path(path)
    if p.suffix.lower() not in JSON_SUFFIXES + YAML_SUFFIXES:
        raise WorkflowLoadError(f"Unsupported extension: {p.suffix.lower()} for {p}")
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise WorkflowLoadError(f"Cannot read {p}: {e}") from e
    try:
        return _parse(p, text)
    except _PARSE_ERRORS as e:
        raise WorkflowLoadError(f"Cannot parse {p}: {e}") from e


def write_json(path: PathLike, data: Any, indent: int = 2) -> Path:
    """Write a report as pretty JSON, replacing the target atomically."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=indent), encoding="utf-8")
    tmp.replace(p)
    return p
