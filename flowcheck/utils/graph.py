# flowcheck/utils/graph.py
from typing import Iterable, List, Optional, Set

import networkx as nx

from flowcheck.models import ConnectionKind, Workflow

FLOW_KINDS = (ConnectionKind.MAIN.value, ConnectionKind.ERROR.value)


def build_graph(workflow: Workflow, kinds: Optional[Iterable[str]] = None) -> nx.DiGraph:
    """
    Build a name-keyed directed graph from the connection map.

    Every node with a string name becomes a vertex (attribute `node`). Edges
    whose endpoints do not name a node are skipped; the structural checker
    reports those. `kinds` limits the connection kinds used, None means all.
    """
    G = nx.DiGraph()
    for n in workflow.nodes:
        if isinstance(n.name, str) and n.name not in G:
            G.add_node(n.name, node=n)

    allowed = set(kinds) if kinds is not None else None
    for e in workflow.connections.edges():
        if allowed is not None and e.kind not in allowed:
            continue
        if e.source not in G or not isinstance(e.target, str) or e.target not in G:
            continue
        if G.has_edge(e.source, e.target):
            G[e.source][e.target]["kinds"].add(e.kind)
        else:
            G.add_edge(e.source, e.target, kinds={e.kind})
    return G


def find_cycle_path(G: nx.DiGraph) -> Optional[List[str]]:
    """One directed cycle as a closed path [a, b, ..., a], or None."""
    try:
        edges = nx.find_cycle(G, orientation="original")
    except nx.NetworkXNoCycle:
        return None
    path = [edges[0][0]] + [e[1] for e in edges]
    return path


def cycle_components(G: nx.DiGraph) -> List[List[str]]:
    """
    Strongly connected components that contain a cycle (size > 1, or a
    self-loop), each sorted, ordered by their first member.
    """
    comps = []
    for comp in nx.strongly_connected_components(G):
        members = sorted(comp)
        if len(members) > 1 or G.has_edge(members[0], members[0]):
            comps.append(members)
    return sorted(comps, key=lambda c: c[0])


def upstream_of(G: nx.DiGraph, name: str) -> Set[str]:
    """Every node with a directed path into `name`."""
    if name not in G:
        return set()
    return set(nx.ancestors(G, name))



def causal_order(G: nx.DiGraph) -> List[str]:
    """Topological order; members of a cycle are placed together, sorted."""
    if nx.is_directed_acyclic_graph(G):
        return list(nx.lexicographical_topological_sort(G))
    C = nx.condensation(G)
    order: List[str] = []
    for cid in nx.lexicographical_topological_sort(C, key=lambda c: min(C.nodes[c]["members"])):
        order.extend(sorted(C.nodes[cid]["members"]))
    return order
