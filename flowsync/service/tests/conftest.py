"""
Pytest fixtures for flowsync.service tests.

Provides shared test fixtures for:
- Temporary workflow stores
- Pre-populated node registries
- WorkflowService instances
- FastAPI test clients
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from flowsync.config_loader import SyncSettings
from flowsync.core import NodeRegistry, WorkflowStore, create_node_data
from flowsync.service import WorkflowService, create_rest_router


@pytest.fixture
def store(tmp_path) -> WorkflowStore:
    """Create an empty WorkflowStore in a temporary directory."""
    return WorkflowStore(tmp_path / "workflows")


@pytest.fixture
def registry() -> NodeRegistry:
    """Registry with a reader feeding a transformer."""
    registry = NodeRegistry()
    registry.register_node("reader-1", create_node_data("input", label="Reader"))
    registry.register_node("transform-1", create_node_data("process", label="Transform"))
    registry.register_node("writer-1", create_node_data("output", label="Writer"))
    registry.add_connection("reader-1", "transform-1", edge_id="e1")
    registry.add_connection("transform-1", "writer-1", edge_id="e2")
    return registry


@pytest.fixture
def canvas_nodes() -> list:
    """Positional nodes matching the registry fixture."""
    return [
        {"id": "reader-1", "type": "input", "position": {"x": 0, "y": 0}, "data": {"label": "Reader"}},
        {"id": "transform-1", "type": "process", "position": {"x": 200, "y": 0}, "data": {"label": "Transform"}},
        {"id": "writer-1", "type": "output", "position": {"x": 400, "y": 0}, "data": {"label": "Writer"}},
    ]


@pytest.fixture
def canvas_edges() -> list:
    return [
        {"id": "e1", "source": "reader-1", "target": "transform-1"},
        {"id": "e2", "source": "transform-1", "target": "writer-1"},
    ]


@pytest.fixture
def service(registry: NodeRegistry, store: WorkflowStore) -> WorkflowService:
    """Create a WorkflowService with default settings."""
    return WorkflowService(registry, store, SyncSettings())


@pytest.fixture
def client(service: WorkflowService) -> TestClient:
    """Create a FastAPI test client with the workflow router mounted under /api."""
    app = FastAPI()
    app.include_router(create_rest_router(service), prefix="/api")
    return TestClient(app)
