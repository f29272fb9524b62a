"""
Graph topology helpers for the positional graph.

Built on NetworkX. Nodes and edges may be models or raw mappings; only
``id`` on nodes and ``id``/``source``/``target`` on edges are read.
"""

from collections import Counter
from typing import Any, Dict, List, Mapping, Sequence, Union

import networkx as nx

from .models import GraphNode, Edge

NodeLike = Union[GraphNode, Mapping[str, Any]]
EdgeLike = Union[Edge, Mapping[str, Any]]


def _get(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def build_graph(nodes: Sequence[NodeLike], edges: Sequence[EdgeLike]) -> nx.MultiDiGraph:
    """
    Build a directed multigraph keyed by node ID and edge ID.

    Edges whose endpoints are not among the nodes are left out.
    """
    graph = nx.MultiDiGraph()
    for node in nodes:
        graph.add_node(_get(node, "id"), data=node)
    for edge in edges:
        source, target = _get(edge, "source"), _get(edge, "target")
        if source in graph and target in graph:
            graph.add_edge(source, target, key=_get(edge, "id"), data=edge)
    return graph


def find_duplicate_node_ids(nodes: Sequence[NodeLike]) -> List[str]:
    """Node IDs that occur more than once, sorted."""
    counts = Counter(_get(node, "id") for node in nodes)
    return sorted(node_id for node_id, count in counts.items() if count > 1)


def find_dangling_edges(nodes: Sequence[NodeLike], edges: Sequence[EdgeLike]) -> List[str]:
    """IDs of edges whose source or target is not a known node."""
    node_ids = {_get(node, "id") for node in nodes}
    return [
        _get(edge, "id") for edge in edges
        if _get(edge, "source") not in node_ids or _get(edge, "target") not in node_ids
    ]


def extract_connected_workflow(nodes: Sequence[NodeLike], edges: Sequence[EdgeLike]) -> Dict[str, Any]:
    """
    Keep only nodes that take part in at least one edge.

    Returns:
        {"nodes": [...], "edges": [...], "connected_node_ids": set}
    """
    if not nodes or not edges:
        return {"nodes": [], "edges": [], "connected_node_ids": set()}

    connected_ids = set()
    for edge in edges:
        connected_ids.add(_get(edge, "source"))
        connected_ids.add(_get(edge, "target"))

    return {
        "nodes": [node for node in nodes if _get(node, "id") in connected_ids],
        "edges": [
            edge for edge in edges
            if _get(edge, "source") in connected_ids and _get(edge, "target") in connected_ids
        ],
        "connected_node_ids": connected_ids,
    }


def find_connected_components(nodes: Sequence[NodeLike], edges: Sequence[EdgeLike]) -> List[Dict[str, Any]]:
    """
    Weakly connected components that contain at least one edge.

    Returns:
        List of {"nodes": [...], "edges": [...], "node_ids": set}, largest first
    """
    if not nodes:
        return []

    graph = build_graph(nodes, edges)
    components = []
    for component_ids in nx.weakly_connected_components(graph):
        subgraph = graph.subgraph(component_ids)
        if subgraph.number_of_edges() == 0:
            continue
        components.append({
            "nodes": [node for node in nodes if _get(node, "id") in component_ids],
            "edges": [data["data"] for _, _, data in subgraph.edges(data=True)],
            "node_ids": set(component_ids),
        })

    components.sort(key=lambda component: len(component["nodes"]), reverse=True)
    return components


def get_largest_connected_component(nodes: Sequence[NodeLike], edges: Sequence[EdgeLike]) -> Dict[str, Any]:
    """The component with the most nodes, or empty lists."""
    components = find_connected_components(nodes, edges)
    if not components:
        return {"nodes": [], "edges": []}
    return {"nodes": components[0]["nodes"], "edges": components[0]["edges"]}


def _complexity(node_count: int, edge_count: int) -> str:
    if node_count > 10 or edge_count > 15:
        return "Complex"
    if node_count > 5 or edge_count > 7:
        return "Medium"
    return "Simple"


def create_workflow_metadata(nodes: Sequence[NodeLike], edges: Sequence[EdgeLike]) -> Dict[str, Any]:
    """Summary stored alongside a saved workflow."""
    node_types = sorted({str(_get(node, "type")) for node in nodes if _get(node, "type")})
    connected = extract_connected_workflow(nodes, edges)
    return {
        "nodeCount": len(nodes),
        "edgeCount": len(edges),
        "connectedNodeCount": len(connected["nodes"]),
        "nodeTypes": node_types,
        "complexity": _complexity(len(nodes), len(edges)),
        "hasMultipleComponents": len(find_connected_components(nodes, edges)) > 1,
    }


def check_workflow_validity(nodes: Sequence[NodeLike], edges: Sequence[EdgeLike]) -> Dict[str, Any]:
    """
    Check whether the canvas holds a saveable connected workflow.

    A workflow needs at least one edge joining two nodes. Duplicate node IDs
    and edges pointing at unknown nodes are reported as errors.
    """
    nodes = list(nodes or [])
    edges = list(edges or [])
    errors = []

    duplicates = find_duplicate_node_ids(nodes)
    if duplicates:
        errors.append(f"Duplicate node IDs: {', '.join(duplicates)}")

    dangling = find_dangling_edges(nodes, edges)
    if dangling:
        errors.append(f"Edges reference unknown nodes: {', '.join(str(e) for e in dangling)}")

    connected = extract_connected_workflow(nodes, edges)
    has_workflow = len(connected["nodes"]) >= 2 and len(connected["edges"]) > 0

    reason = None
    if not nodes:
        reason = "No nodes found on canvas"
    elif not edges:
        reason = "No connections found - workflow must have connected nodes"
    elif not has_workflow:
        reason = "No connected nodes found"

    return {
        "hasWorkflow": has_workflow,
        "isValid": has_workflow and not errors,
        "reason": reason,
        "nodeCount": len(connected["nodes"]) if has_workflow else len(nodes),
        "edgeCount": len(connected["edges"]) if has_workflow else len(edges),
        "errors": errors,
    }
