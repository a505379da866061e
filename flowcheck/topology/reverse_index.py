# flowcheck/topology/reverse_index.py
"""
AI sub-nodes point *at* their consumer (`Chat Model --ai_languageModel--> Agent`),
so topology rules look connections up by target.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from flowcheck.models import Workflow


@dataclass(frozen=True)
class ReverseConnection:
    source_name: str
    source_type: str
    type: str
    index: int = 0


ReverseIndex = Dict[str, List[ReverseConnection]]


def build_reverse_index(workflow: Workflow) -> ReverseIndex:
    """target name -> inbound connections, in connection-map order."""
    by_name = workflow.node_by_name()
    index: ReverseIndex = {}
    for edge in workflow.connections.edges():
        if not isinstance(edge.target, str) or not edge.target.strip():
            continue
        source = by_name.get(edge.source)
        index.setdefault(edge.target, []).append(ReverseConnection(
            source_name=edge.source,
            source_type=source.type if source is not None and isinstance(source.type, str) else "",
            type=edge.kind,
            index=edge.target_index,
        ))
    return index


def incoming(index: ReverseIndex, name: str, kind: Optional[str] = None) -> List[ReverseConnection]:
    conns = index.get(name, [])
    if kind is None:
        return list(conns)
    return [c for c in conns if c.type == kind]
