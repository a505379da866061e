# flowcheck/models.py
"""
Data model shared by every validator stage.

Workflows arrive as plain JSON-like dicts. `Workflow.from_dict` turns them into
the dataclasses below without ever raising: malformed pieces are kept as
`malformed` notes so the structural checker can report them as issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class IssueCategory(str, Enum):
    STRUCTURAL = "StructuralError"
    CONFIGURATION = "ConfigurationError"
    EXPRESSION = "ExpressionError"
    TOPOLOGY = "TopologyError"


class ConnectionKind(str, Enum):
    MAIN = "main"
    ERROR = "error"
    AI_TOOL = "ai_tool"
    AI_LANGUAGE_MODEL = "ai_languageModel"
    AI_MEMORY = "ai_memory"
    AI_EMBEDDING = "ai_embedding"
    AI_VECTOR_STORE = "ai_vectorStore"
    AI_DOCUMENT = "ai_document"
    AI_TEXT_SPLITTER = "ai_textSplitter"
    AI_OUTPUT_PARSER = "ai_outputParser"
    AI_RETRIEVER = "ai_retriever"
    AI_RERANKER = "ai_reranker"

    @classmethod
    def parse(cls, value: Any) -> Optional["ConnectionKind"]:
        try:
            return cls(value)
        except ValueError:
            return None


# Node-level keys that sit beside `parameters`, not inside it.
NODE_SETTING_KEYS = (
    "onError",
    "retryOnFail",
    "continueOnFail",
    "maxTries",
    "waitBetweenTries",
    "alwaysOutputData",
    "executeOnce",
)


# ---------- Workflow document ----------

@dataclass
class Node:
    name: Any
    type: Any
    id: Any = None
    type_version: Any = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    disabled: bool = False
    credentials: Optional[Dict[str, Any]] = None
    settings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        params = data.get("parameters")
        creds = data.get("credentials")
        return cls(
            name=data.get("name"),
            type=data.get("type"),
            id=data.get("id"),
            type_version=data.get("typeVersion"),
            parameters=params if isinstance(params, dict) else {},
            disabled=data.get("disabled") is True,
            credentials=creds if isinstance(creds, dict) else None,
            settings={k: data[k] for k in NODE_SETTING_KEYS if k in data},
        )

    @property
    def label(self) -> str:
        """Human-facing reference used in messages."""
        if isinstance(self.name, str) and self.name:
            return self.name
        return f"#{self.id}" if self.id is not None else "<unnamed>"


@dataclass(frozen=True)
class Edge:
    """One wire: `source` output slot `source_index` of `kind` into `target` input `target_index`."""
    source: str
    target: Any
    kind: str
    source_index: int = 0
    target_kind: str = "main"
    target_index: int = 0


class ConnectionMap:
    """
    source name -> kind -> ordered output slots; each slot is None (unconnected
    branch) or a list of edges. Empty slots are kept as None so that slot
    positions stay meaningful.
    """

    def __init__(self) -> None:
        self._outputs: Dict[str, Dict[str, List[Optional[List[Edge]]]]] = {}
        self.malformed: List[Tuple[str, str]] = []

    @classmethod
    def from_dict(cls, data: Any) -> "ConnectionMap":
        cmap = cls()
        if not isinstance(data, dict):
            return cmap
        for source, kinds in data.items():
            if not isinstance(kinds, dict):
                cmap.malformed.append((str(source), "outputs must be an object keyed by connection type"))
                continue
            per_kind = cmap._outputs.setdefault(str(source), {})
            for kind, slots in kinds.items():
                if not isinstance(slots, list):
                    cmap.malformed.append((str(source), f"'{kind}' outputs must be a list of slots"))
                    continue
                parsed: List[Optional[List[Edge]]] = []
                for idx, slot in enumerate(slots):
                    parsed.append(cmap._parse_slot(str(source), kind, idx, slot))
                per_kind[kind] = parsed
        return cmap

    def _parse_slot(self, source: str, kind: str, idx: int, slot: Any) -> Optional[List[Edge]]:
        if slot is None:
            return None
        if isinstance(slot, dict):
            slot = [slot]
        if not isinstance(slot, list):
            self.malformed.append((source, f"'{kind}' output {idx} is not a list of connections"))
            return None
        edges = []
        for raw in slot:
            if not isinstance(raw, dict) or "node" not in raw:
                self.malformed.append((source, f"'{kind}' output {idx} has an entry without a target node"))
                continue
            t_index = raw.get("index", 0)
            edges.append(Edge(
                source=source,
                target=raw.get("node"),
                kind=kind,
                source_index=idx,
                target_kind=raw.get("type", kind),
                target_index=t_index if isinstance(t_index, int) else 0,
            ))
        return edges or None

    def sources(self) -> List[str]:
        return list(self._outputs)

    def kinds(self, source: str) -> Dict[str, List[Optional[List[Edge]]]]:
        return self._outputs.get(source, {})

    def slots(self, source: str, kind: str) -> List[Optional[List[Edge]]]:
        return self.kinds(source).get(kind, [])

    def edges(self, source: Optional[str] = None) -> Iterator[Edge]:
        names = [source] if source is not None else list(self._outputs)
        for name in names:
            for slots in self.kinds(name).values():
                for slot in slots:
                    yield from slot or ()

    def has_output(self, source: str, kind: str) -> bool:
        return any(slot for slot in self.slots(source, kind))

    def __len__(self) -> int:
        return sum(1 for _ in self.edges())

    def __bool__(self) -> bool:
        return bool(self._outputs)


@dataclass
class Workflow:
    name: str = ""
    nodes: List[Node] = field(default_factory=list)
    connections: ConnectionMap = field(default_factory=ConnectionMap)
    settings: Dict[str, Any] = field(default_factory=dict)
    has_nodes_field: bool = True
    has_connections_field: bool = True
    malformed_nodes: List[int] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Any) -> "Workflow":
        if isinstance(data, Workflow):
            return data
        if not isinstance(data, dict):
            return cls(has_nodes_field=False, has_connections_field=False)
        raw_nodes = data.get("nodes")
        nodes: List[Node] = []
        bad: List[int] = []
        if isinstance(raw_nodes, list):
            for i, n in enumerate(raw_nodes):
                if isinstance(n, dict):
                    nodes.append(Node.from_dict(n))
                else:
                    bad.append(i)
        settings = data.get("settings")
        return cls(
            name=str(data.get("name") or ""),
            nodes=nodes,
            connections=ConnectionMap.from_dict(data.get("connections")),
            settings=settings if isinstance(settings, dict) else {},
            has_nodes_field=isinstance(raw_nodes, list),
            has_connections_field=isinstance(data.get("connections"), dict),
            malformed_nodes=bad,
            raw=data,
        )

    def node_by_name(self) -> Dict[str, Node]:
        """First node per name; duplicates are reported separately."""
        out: Dict[str, Node] = {}
        for n in self.nodes:
            if isinstance(n.name, str) and n.name not in out:
                out[n.name] = n
        return out


# ---------- Catalog ----------

@dataclass
class PropertySpec:
    name: str
    display_name: str = ""
    type: str = "string"
    required: bool = False
    default: Any = None
    options: List[Any] = field(default_factory=list)
    display_options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PropertySpec":
        opts = []
        for o in data.get("options") or []:
            # option lists hold {name, value}; collections hold nested properties
            if isinstance(o, dict) and "value" in o:
                opts.append(o["value"])
        return cls(
            name=str(data.get("name", "")),
            display_name=str(data.get("displayName") or data.get("name", "")),
            type=str(data.get("type") or "string"),
            required=bool(data.get("required", False)),
            default=data.get("default"),
            options=opts,
            display_options=data.get("displayOptions") or {},
        )


@dataclass
class Descriptor:
    type: str
    display_name: str = ""
    package: str = ""
    current_version: float = 1
    max_version: Optional[float] = None
    is_versioned: bool = False
    is_ai_tool: bool = False
    properties: List[PropertySpec] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Descriptor":
        version = data.get("currentVersion", data.get("version", 1))
        if isinstance(version, list):
            version = max(version) if version else 1
        max_version = data.get("maxVersion")
        return cls(
            type=str(data["type"]),
            display_name=str(data.get("displayName") or data["type"]),
            package=str(data.get("package") or ""),
            current_version=version,
            max_version=max_version if max_version is not None else (version if data.get("isVersioned") else None),
            is_versioned=bool(data.get("isVersioned", False)),
            is_ai_tool=bool(data.get("isAITool", False)),
            properties=[PropertySpec.from_dict(p) for p in data.get("properties") or [] if isinstance(p, dict)],
        )


# ---------- Results ----------

@dataclass
class ValidationIssue:
    severity: Severity
    message: str
    node_id: Any = None
    node_name: Optional[str] = None
    code: Optional[str] = None
    category: Optional[IssueCategory] = None
    fix: Optional[str] = None

    def key(self) -> Tuple[Any, ...]:
        return (self.severity.value, self.node_name, self.code, self.message)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"severity": self.severity.value, "message": self.message}
        if self.node_id is not None:
            d["nodeId"] = self.node_id
        if self.node_name is not None:
            d["nodeName"] = self.node_name
        if self.code:
            d["code"] = self.code
        if self.category is not None:
            d["category"] = self.category.value
        if self.fix:
            d["fix"] = self.fix
        return d

    def __str__(self) -> str:
        where = f"[{self.node_name}] " if self.node_name else ""
        code = f" ({self.code})" if self.code else ""
        return f"{self.severity.value.upper()}: {where}{self.message}{code}"


@dataclass
class Statistics:
    total_nodes: int = 0
    enabled_nodes: int = 0
    trigger_nodes: int = 0
    valid_connections: int = 0
    invalid_connections: int = 0
    expressions_validated: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalNodes": self.total_nodes,
            "enabledNodes": self.enabled_nodes,
            "triggerNodes": self.trigger_nodes,
            "validConnections": self.valid_connections,
            "invalidConnections": self.invalid_connections,
            "expressionsValidated": self.expressions_validated,
        }


@dataclass
class ValidationResult:
    """Outcome of a workflow run. Info-severity issues travel in `warnings`."""
    valid: bool = True
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    statistics: Statistics = field(default_factory=Statistics)
    autofix: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def add(self, issue: ValidationIssue) -> None:
        if issue.severity is Severity.ERROR:
            self.errors.append(issue)
        else:
            self.warnings.append(issue)

    def extend(self, issues) -> None:
        for i in issues:
            self.add(i)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "suggestions": list(self.suggestions),
            "statistics": self.statistics.to_dict(),
            "autofix": {k: dict(v) for k, v in self.autofix.items()},
        }


@dataclass
class NodeConfigResult:
    """Rule-engine output for a single node configuration."""
    valid: bool = True
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    autofix: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "suggestions": list(self.suggestions),
            "autofix": dict(self.autofix),
        }


@dataclass
class ExpressionResult:
    valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    used_variables: Set[str] = field(default_factory=set)
    used_nodes: Set[str] = field(default_factory=set)
    count: int = 0
