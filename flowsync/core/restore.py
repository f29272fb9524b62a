"""
State restorer: repopulate the node registry from a persisted snapshot.

This is the only engine with side effects on shared state, and it is
strictly destructive-then-additive:

1. The registry is fully reset (cleanup, then initialize) before anything
   is written.
2. Every connection-map entry is inserted into the live connection map,
   stamped with restoredAt. Entries are not shape-checked here; that is the
   integrity validator's job before persistence.
3. Every node whose data came from the registry at merge time is written
   back into the registry's node map. Fallback nodes are skipped.

On failure the registry is emptied again and RestoreError is raised, so a
failed load never looks like a partially successful one.
"""

import logging
import time
from typing import Any, Iterable, Iterator, Mapping, Tuple, Union

from .errors import RestoreError
from .models import (
    EnhancedNode, PersistedConnectionMap, RestoreResult, RestoreStats,
    parse_node_data, utc_now, utc_now_iso,
)
from .registry import NodeStore

logger = logging.getLogger(__name__)

RawConnectionMap = Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None]


def normalize_connection_map(raw: RawConnectionMap) -> PersistedConnectionMap:
    """
    Normalize a connection map to an insertion-ordered dict.

    Accepts None, any mapping, or an iterable of (connection_id, entry)
    pairs (the serialized form of an ordered map).

    Raises:
        TypeError: raw is none of the accepted shapes
    """
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw.items())
    if isinstance(raw, (str, bytes)):
        raise TypeError("Connection map must be a mapping or key/value pairs, got a string")

    try:
        pairs: Iterator = iter(raw)
    except TypeError:
        raise TypeError(f"Connection map must be a mapping or key/value pairs, got {type(raw).__name__}")

    normalized: PersistedConnectionMap = {}
    for pair in pairs:
        try:
            connection_id, entry = pair
        except (TypeError, ValueError):
            raise TypeError(f"Connection map entries must be (id, connection) pairs, got {pair!r}")
        normalized[connection_id] = entry
    return normalized


def _as_enhanced_node(node: Union[EnhancedNode, Mapping[str, Any]]) -> EnhancedNode:
    if isinstance(node, EnhancedNode):
        return node
    return EnhancedNode.model_validate(dict(node))


async def restore_registry_state(
    registry: NodeStore,
    enhanced_nodes: Iterable[Union[EnhancedNode, Mapping[str, Any]]],
    connection_map: RawConnectionMap = None,
) -> RestoreResult:
    """
    Reset the registry and repopulate it from a snapshot.

    Args:
        registry: Registry to reset and fill
        enhanced_nodes: Snapshot nodes (EnhancedNode or raw mappings)
        connection_map: Saved live connection map (mapping or pairs), optional

    Returns:
        RestoreResult with restoredNodes / restoredConnections counts

    Raises:
        RestoreError: any failure; the registry is left empty
    """
    logger.debug("Restoring node registry state")
    start = time.perf_counter()
    restored_nodes = 0
    restored_connections = 0
    reset_done = False

    try:
        await registry.cleanup()
        await registry.initialize()
        reset_done = True

        restored_at = utc_now_iso()
        for connection_id, connection in normalize_connection_map(connection_map).items():
            entry = dict(connection) if isinstance(connection, Mapping) else {}
            registry.connections[connection_id] = {**entry, "restoredAt": restored_at}
            restored_connections += 1

        for node in (_as_enhanced_node(n) for n in enhanced_nodes):
            if not node.is_resolved:
                continue
            node_data = parse_node_data(node.data)
            registry.nodes[node.id] = node_data
            restored_nodes += 1
            logger.debug(f"Restored node {node.id} with {node_data.connection_count} connections")

    except Exception as e:
        logger.exception("State restoration failed")
        if reset_done:
            registry.nodes.clear()
            registry.connections.clear()
        raise RestoreError(str(e)) from e

    stats = RestoreStats(
        restored_nodes=restored_nodes,
        restored_connections=restored_connections,
        processing_time=(time.perf_counter() - start) * 1000,
        timestamp=utc_now(),
    )
    logger.info(f"Node registry state restored: {restored_nodes} nodes, {restored_connections} connections")
    return RestoreResult(success=True, stats=stats)
