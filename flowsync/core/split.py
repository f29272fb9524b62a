"""
Splitter: decompose a snapshot into positional and semantic views.

The positional view goes to the rendering layer, the semantic view
(nodeDataMap) to the registry. Fallback nodes never enter nodeDataMap,
matching the restorer. Callers run the integrity validator first.
"""

import copy
from typing import Any, Mapping, Union

from .models import (
    GraphNode, EnhancedNode, MergeResult, WorkflowDocument, SplitResult,
    OPTIONAL_LAYOUT_KEYS,
)


def extract_positional_node(node: EnhancedNode) -> GraphNode:
    """Minimal positional node: id, type, position, selected, data, plus layout keys if present."""
    positional = {
        "id": node.id,
        "type": node.type,
        "position": node.position.model_copy(),
        "selected": node.selected,
        "data": copy.deepcopy(node.data),
    }
    for key in OPTIONAL_LAYOUT_KEYS:
        value = getattr(node, key)
        if value is not None:
            positional[key] = value
    return GraphNode.model_validate(positional)


def split_workflow_data(snapshot: Union[MergeResult, WorkflowDocument, Mapping[str, Any]]) -> SplitResult:
    """Split a MergeResult or persisted document into positional nodes and nodeDataMap."""
    if isinstance(snapshot, Mapping):
        snapshot = WorkflowDocument.model_validate(dict(snapshot))

    nodes = []
    node_data_map = {}
    for node in snapshot.nodes:
        nodes.append(extract_positional_node(node))
        if node.is_resolved:
            node_data_map[node.id] = copy.deepcopy(node.data)

    return SplitResult(
        nodes=nodes,
        edges=list(snapshot.edges),
        node_data_map=node_data_map,
        connection_map=dict(snapshot.connection_map or {}),
        stats=snapshot.stats,
    )
