"""
Live node registry holding the semantic graph.

The registry owns per-node NodeData and the live connection map. It is the
one shared, mutable resource in the system: only node registration calls and
the state restorer mutate it, while merge and validation only read it.

There is no internal locking. Callers serialize save and load against a
given registry instance (see WorkflowService).
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Mapping, Union

from .models import (
    BaseNodeData, NodeData, ConnectionMap,
    parse_node_data, create_connection_data, utc_now_iso,
)

logger = logging.getLogger(__name__)


class NodeStore(Protocol):
    """Contract the synchronization engines need from a registry."""

    nodes: Dict[str, NodeData]
    connections: ConnectionMap

    def get_node_data(self, node_id: str) -> Optional[NodeData]: ...

    async def initialize(self) -> None: ...

    async def cleanup(self) -> None: ...

    def register_node(
        self,
        node_id: str,
        node_data: Union[Mapping[str, Any], BaseNodeData],
        update_callback: Optional[Callable[[NodeData], None]] = None,
    ) -> NodeData: ...


@dataclass
class RegistryEvent:
    """Notification sent to registry listeners."""
    action: str  # "registered", "unregistered", "connection_added", "connection_removed"
    node_id: str
    connection_id: Optional[str] = None


def make_connection_id(
    source_node_id: str,
    target_node_id: str,
    source_handle: str = "default",
    target_handle: str = "default",
) -> str:
    return f"{source_node_id}-{target_node_id}-{source_handle}-{target_handle}"


class NodeRegistry:
    """
    In-memory registry of NodeData and live connections.

    NodeData is validated once, here, on registration. Everything stored in
    ``nodes`` is one of the closed NodeData variants.
    """

    def __init__(self):
        self.nodes: Dict[str, NodeData] = {}
        self.connections: ConnectionMap = {}
        self.update_callbacks: Dict[str, Callable[[NodeData], None]] = {}
        self.initialized = False
        self._listeners: List[Callable[[RegistryEvent], None]] = []

    def add_listener(self, listener: Callable[[RegistryEvent], None]) -> None:
        """Add a listener that receives every registry event."""
        self._listeners.append(listener)

    def _notify(self, event: RegistryEvent) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Error in registry listener: {e}")

    async def initialize(self) -> None:
        """Initialize the registry. Calling it twice is a no-op."""
        if self.initialized:
            return
        self.initialized = True
        logger.debug("Node registry initialized")

    async def cleanup(self) -> None:
        """Drop all nodes, connections and callbacks."""
        self.nodes.clear()
        self.connections.clear()
        self.update_callbacks.clear()
        self.initialized = False
        logger.debug("Node registry cleaned up")

    def get_node_data(self, node_id: str) -> Optional[NodeData]:
        return self.nodes.get(node_id)

    def register_node(
        self,
        node_id: str,
        node_data: Union[Mapping[str, Any], BaseNodeData],
        update_callback: Optional[Callable[[NodeData], None]] = None,
    ) -> NodeData:
        """
        Register (or replace) a node.

        Args:
            node_id: Node ID shared with the positional graph
            node_data: Raw mapping or NodeData variant
            update_callback: Called with the node's data when it changes

        Returns:
            The stored NodeData variant

        Raises:
            pydantic.ValidationError / ValueError / TypeError if node_data is not valid NodeData
        """
        data = parse_node_data(node_data)
        self.nodes[node_id] = data
        if update_callback is not None:
            self.update_callbacks[node_id] = update_callback
        else:
            self.update_callbacks.pop(node_id, None)

        logger.debug(f"Node {node_id} registered ({data.category})")
        self._notify(RegistryEvent(action="registered", node_id=node_id))
        return data

    def unregister_node(self, node_id: str) -> None:
        """Remove a node and every live connection touching it."""
        self.nodes.pop(node_id, None)
        self.update_callbacks.pop(node_id, None)

        stale = [
            connection_id for connection_id, connection in self.connections.items()
            if connection.get("sourceNodeId") == node_id or connection.get("targetNodeId") == node_id
        ]
        for connection_id in stale:
            del self.connections[connection_id]

        logger.debug(f"Node {node_id} unregistered ({len(stale)} connections dropped)")
        self._notify(RegistryEvent(action="unregistered", node_id=node_id))

    def add_connection(
        self,
        source_node_id: str,
        target_node_id: str,
        source_handle: str = "default",
        target_handle: str = "default",
        edge_id: Optional[str] = None,
    ) -> str:
        """
        Connect two registered nodes.

        Unless the target allows multiple connections
        (``input.config.allowMultipleConnections``), its existing inbound
        connections are replaced.

        Returns:
            The connection ID

        Raises:
            KeyError: target node is not registered
        """
        target = self.nodes.get(target_node_id)
        if target is None:
            raise KeyError(f"Target node {target_node_id} not found")

        connection_id = make_connection_id(source_node_id, target_node_id, source_handle, target_handle)

        if not target.input.config.get("allowMultipleConnections", False):
            for old_id in list(target.input.connections):
                self.connections.pop(old_id, None)
            target.input.connections.clear()
            target.input.processed = {}

        self.connections[connection_id] = {
            "id": connection_id,
            "edgeId": edge_id,
            "sourceNodeId": source_node_id,
            "targetNodeId": target_node_id,
            "sourceHandle": source_handle,
            "targetHandle": target_handle,
            "createdAt": utc_now_iso(),
        }
        target.input.connections[connection_id] = create_connection_data(
            source_node_id, source_handle, target_handle
        )

        self._run_update_callback(target_node_id)
        self._notify(RegistryEvent(action="connection_added", node_id=target_node_id, connection_id=connection_id))
        return connection_id

    def remove_connection(
        self,
        source_node_id: str,
        target_node_id: str,
        source_handle: str = "default",
        target_handle: str = "default",
    ) -> bool:
        """Disconnect two nodes. Returns False if there was no such connection."""
        connection_id = make_connection_id(source_node_id, target_node_id, source_handle, target_handle)
        removed = self.connections.pop(connection_id, None) is not None

        target = self.nodes.get(target_node_id)
        if target is not None and connection_id in target.input.connections:
            del target.input.connections[connection_id]
            removed = True
            self._run_update_callback(target_node_id)

        if removed:
            self._notify(RegistryEvent(action="connection_removed", node_id=target_node_id, connection_id=connection_id))
        return removed

    def _run_update_callback(self, node_id: str) -> None:
        callback = self.update_callbacks.get(node_id)
        if callback is None:
            return
        try:
            callback(self.nodes[node_id])
        except Exception as e:
            logger.warning(f"Update callback for node {node_id} failed: {e}")

    def get_stats(self) -> Dict[str, Any]:
        """Counts of nodes by output status and category."""
        nodes_by_status: Dict[str, int] = {}
        nodes_by_category: Dict[str, int] = {}
        for node_data in self.nodes.values():
            status = node_data.output.meta.status
            nodes_by_status[status] = nodes_by_status.get(status, 0) + 1
            nodes_by_category[node_data.category] = nodes_by_category.get(node_data.category, 0) + 1

        return {
            "totalNodes": len(self.nodes),
            "totalConnections": len(self.connections),
            "nodesByStatus": nodes_by_status,
            "nodesByCategory": nodes_by_category,
            "initialized": self.initialized,
        }
