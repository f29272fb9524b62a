"""
Pytest fixtures for flowsync.core tests.

Provides shared test fixtures for:
- Empty and pre-populated node registries
- Positional nodes and edges matching the populated registry
- A temporary workflow store
"""

import pytest

from flowsync.core import NodeRegistry, WorkflowStore, create_node_data


TIMESTAMP_KEYS = {"timestamp", "lastProcessed", "lastSync", "createdAt", "exportedAt", "restoredAt", "savedAt"}


@pytest.fixture
def registry() -> NodeRegistry:
    """An empty, uninitialized registry."""
    return NodeRegistry()


@pytest.fixture
def populated_registry(registry: NodeRegistry) -> NodeRegistry:
    """
    Registry with a small pipeline:

        csv-1 ──┐
                ├──> join-1 ──> report-1
        api-1 ──┘
    """
    registry.register_node("csv-1", create_node_data("input", label="CSV Reader"))
    registry.register_node("api-1", create_node_data("input", label="API Reader"))

    join = create_node_data("process", label="Joiner", version="2.1.0")
    join.input.config["allowMultipleConnections"] = True
    registry.register_node("join-1", join)

    registry.register_node("report-1", create_node_data("output", label="Report"))

    registry.add_connection("csv-1", "join-1", edge_id="e-csv-join")
    registry.add_connection("api-1", "join-1", edge_id="e-api-join")
    registry.add_connection("join-1", "report-1", edge_id="e-join-report")
    return registry


@pytest.fixture
def positional_nodes() -> list:
    """Positional nodes for every node in populated_registry."""
    return [
        {"id": "csv-1", "type": "input", "position": {"x": 0, "y": 0}, "data": {"label": "CSV Reader"}},
        {"id": "api-1", "type": "input", "position": {"x": 0, "y": 120}, "data": {"label": "API Reader"}},
        {
            "id": "join-1", "type": "process", "position": {"x": 250, "y": 60},
            "selected": True, "width": 180, "height": 64, "data": {"label": "Joiner"},
        },
        {"id": "report-1", "type": "output", "position": {"x": 500, "y": 60}, "data": {"label": "Report"}},
    ]


@pytest.fixture
def positional_edges() -> list:
    return [
        {"id": "e-csv-join", "source": "csv-1", "target": "join-1", "animated": True},
        {"id": "e-api-join", "source": "api-1", "target": "join-1"},
        {
            "id": "e-join-report", "source": "join-1", "target": "report-1",
            "sourceHandle": "out", "targetHandle": "in",
        },
    ]


@pytest.fixture
def strip_timestamps():
    """Return a function that drops wall-clock fields from nested dicts."""
    def _strip(value):
        if isinstance(value, dict):
            return {k: _strip(v) for k, v in value.items() if k not in TIMESTAMP_KEYS}
        if isinstance(value, list):
            return [_strip(v) for v in value]
        return value
    return _strip


@pytest.fixture
def workflow_store(tmp_path) -> WorkflowStore:
    """A document store in a temporary directory."""
    return WorkflowStore(tmp_path / "workflows")
