"""
REST API router for workflow save/load operations.

Provides FastAPI routes that expose WorkflowService methods via HTTP endpoints.
This module handles HTTP-specific concerns like request/response formatting,
error mapping, and route definitions.

Error mapping:
- Unknown workflow id -> 404
- Bad request data (name, import payload) -> 400
- Integrity validation failure on save -> 422 with the validation result
- Merge / restore failure -> 500 with the wrapped message
"""

from typing import List, Optional, Dict, Any
from fastapi import APIRouter, HTTPException, Query, Response
from pydantic import BaseModel, Field

from flowsync.core import (
    MergeError, RestoreError, IntegrityValidationError, WorkflowNotFoundError,
)

from .service import WorkflowService


# ==================== Request Models ====================

class SaveWorkflowRequest(BaseModel):
    """Request model for saving the current graph."""
    name: str = Field(..., min_length=1, max_length=200, description="Workflow name")
    description: str = Field("", description="Workflow description")
    nodes: List[Dict[str, Any]] = Field(default_factory=list, description="Positional nodes")
    edges: List[Dict[str, Any]] = Field(default_factory=list, description="Positional edges")
    viewport: Optional[Dict[str, Any]] = Field(None, description="Canvas viewport")
    workflow_id: Optional[str] = Field(None, description="Existing workflow to overwrite")


class ImportWorkflowRequest(BaseModel):
    """Request model for importing an exported workflow."""
    content: str = Field(..., description="Exported workflow JSON")


# ==================== Router Factory ====================

def create_rest_router(service: WorkflowService, prefix: str = "") -> APIRouter:
    """
    Create a FastAPI router with all workflow endpoints.

    Args:
        service: WorkflowService instance to use for operations
        prefix: Optional URL prefix for all routes

    Returns:
        Configured APIRouter
    """
    router = APIRouter(prefix=prefix, tags=["workflows"])

    # ==================== Workflow Endpoints ====================

    @router.get("/workflows")
    async def list_workflows(search: Optional[str] = Query(None, description="Filter by name or description")) -> Dict[str, Any]:
        """List saved workflows, newest first."""
        return service.list_workflows(search)

    @router.post("/workflows")
    async def save_workflow(request: SaveWorkflowRequest) -> Dict[str, Any]:
        """Merge, validate and persist the given graph."""
        try:
            return await service.save_workflow(
                name=request.name,
                description=request.description,
                nodes=request.nodes,
                edges=request.edges,
                viewport=request.viewport,
                workflow_id=request.workflow_id,
            )
        except IntegrityValidationError as e:
            raise HTTPException(status_code=422, detail={
                "message": str(e),
                "validation": e.validation.to_dict(),
            })
        except MergeError as e:
            raise HTTPException(status_code=500, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @router.post("/workflows/import")
    async def import_workflow(request: ImportWorkflowRequest) -> Dict[str, Any]:
        """Import an exported workflow under a new id."""
        try:
            return service.import_workflow(request.content)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @router.get("/workflows/{workflow_id}")
    async def get_workflow(workflow_id: str) -> Dict[str, Any]:
        """Get a saved workflow record."""
        try:
            return service.get_workflow(workflow_id)
        except WorkflowNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @router.delete("/workflows/{workflow_id}")
    async def delete_workflow(workflow_id: str) -> Dict[str, Any]:
        """Delete a saved workflow."""
        try:
            return service.delete_workflow(workflow_id)
        except WorkflowNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @router.post("/workflows/{workflow_id}/load")
    async def load_workflow(workflow_id: str) -> Dict[str, Any]:
        """Restore a workflow into the registry and return its positional graph."""
        try:
            return await service.load_workflow(workflow_id)
        except WorkflowNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except RestoreError as e:
            raise HTTPException(status_code=500, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @router.get("/workflows/{workflow_id}/export")
    async def export_workflow(workflow_id: str) -> Response:
        """Download a workflow as JSON."""
        try:
            content = service.export_workflow(workflow_id)
        except WorkflowNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return Response(
            content=content,
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{workflow_id}.json"'},
        )

    # ==================== Stats Endpoint ====================

    @router.get("/stats")
    async def get_stats() -> Dict[str, Any]:
        """Store, registry and last merge statistics."""
        return service.get_stats()

    return router
