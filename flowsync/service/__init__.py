"""
flowsync.service - Save/load orchestration and HTTP routing

Usage:
    from fastapi import FastAPI
    from flowsync.core import NodeRegistry, WorkflowStore
    from flowsync.service import WorkflowService, create_rest_router

    service = WorkflowService(NodeRegistry(), WorkflowStore("data/workflows"))
    app = FastAPI()
    app.include_router(create_rest_router(service), prefix="/api")
"""

from .service import WorkflowService
from .rest_api import create_rest_router

__all__ = ["WorkflowService", "create_rest_router"]
