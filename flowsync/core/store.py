"""
Workflow document store with JSON file persistence.

One ``<id>.json`` file per workflow record under a single directory.

Concurrency Safety:
- Uses threading.RLock for the directory as a whole
- Uses file locking (fcntl on Unix, msvcrt on Windows) for file access
- Implements atomic writes via temp file + rename
"""

import json
import logging
import os
import re
import sys
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from .errors import WorkflowNotFoundError
from .models import WorkflowRecord, utc_now

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


# Cross-platform file locking
if sys.platform == 'win32':
    import msvcrt

    def _lock_file(f, exclusive=True):
        msvcrt.locking(f.fileno(), msvcrt.LK_NBLCK if exclusive else msvcrt.LK_LOCK, 1)

    def _unlock_file(f):
        msvcrt.locking(f.fileno(), msvcrt.LK_UNLCK, 1)
else:
    import fcntl

    def _lock_file(f, exclusive=True):
        fcntl.flock(f, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)

    def _unlock_file(f):
        fcntl.flock(f, fcntl.LOCK_UN)


def generate_workflow_id() -> str:
    return f"workflow_{uuid.uuid4()}"


class WorkflowStore:
    """
    Stores workflow records as JSON files.

    Thread-safety:
    - All public methods are protected by _lock (threading.RLock)
    - File operations use OS-level file locking for multi-process safety
    - Writes are atomic (temp file + rename) to prevent corruption
    """

    def __init__(self, directory: Union[str, Path] = "data/workflows"):
        self.directory = Path(directory)
        self._lock = threading.RLock()
        self.directory.mkdir(parents=True, exist_ok=True)

    # ==================== File helpers ====================

    def _path_for(self, workflow_id: str) -> Path:
        if not workflow_id or not _SAFE_ID.match(workflow_id):
            raise ValueError(f"Invalid workflow id: {workflow_id!r}")
        return self.directory / f"{workflow_id}.json"

    def _read_file(self, path: Path) -> WorkflowRecord:
        with open(path, 'r', encoding='utf-8') as f:
            _lock_file(f, exclusive=False)
            try:
                data = json.load(f)
            finally:
                _unlock_file(f)
        return WorkflowRecord.model_validate(data)

    def _write_file(self, record: WorkflowRecord) -> None:
        path = self._path_for(record.id)
        temp_fd, temp_path = tempfile.mkstemp(suffix='.json', prefix='workflow_', dir=self.directory)
        try:
            with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
                _lock_file(f, exclusive=True)
                try:
                    json.dump(record.to_dict(), f, indent=2, ensure_ascii=False)
                    f.flush()
                    os.fsync(f.fileno())
                finally:
                    _unlock_file(f)
            os.replace(temp_path, path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    # ==================== CRUD ====================

    def save_workflow(self, record: Union[WorkflowRecord, Dict[str, Any]]) -> str:
        """
        Save a workflow record, creating or replacing its file.

        A missing id is generated. updatedAt is always refreshed.

        Returns:
            The workflow id
        """
        if not isinstance(record, WorkflowRecord):
            record = WorkflowRecord.model_validate(record)

        with self._lock:
            if not record.id:
                record.id = generate_workflow_id()
            record.updated_at = utc_now()
            self._write_file(record)

        logger.info(f"Saved workflow {record.id} ({record.name})")
        return record.id

    def load_workflow(self, workflow_id: str) -> Optional[WorkflowRecord]:
        """Load a record by id, or None when it does not exist."""
        path = self._path_for(workflow_id)
        with self._lock:
            if not path.exists():
                return None
            return self._read_file(path)

    def get_all_workflows(self) -> List[WorkflowRecord]:
        """All readable records, newest update first."""
        records = []
        with self._lock:
            for path in self.directory.glob("*.json"):
                try:
                    records.append(self._read_file(path))
                except (OSError, json.JSONDecodeError, ValidationError) as e:
                    logger.warning(f"Skipping unreadable workflow file {path.name}: {e}")
        records.sort(key=lambda r: r.updated_at, reverse=True)
        return records

    def delete_workflow(self, workflow_id: str) -> bool:
        path = self._path_for(workflow_id)
        with self._lock:
            if not path.exists():
                return False
            path.unlink()
        logger.info(f"Deleted workflow {workflow_id}")
        return True

    def update_workflow(self, workflow_id: str, updates: Dict[str, Any]) -> WorkflowRecord:
        """
        Apply field updates to an existing record and save it.

        Raises:
            WorkflowNotFoundError: no record with this id
        """
        with self._lock:
            existing = self.load_workflow(workflow_id)
            if existing is None:
                raise WorkflowNotFoundError(workflow_id)

            merged = {**existing.to_dict(), **updates, "id": workflow_id}
            record = WorkflowRecord.model_validate(merged)
            self.save_workflow(record)
            return record

    # ==================== Queries ====================

    def search_workflows(self, search_term: Optional[str]) -> List[WorkflowRecord]:
        """Case-insensitive substring match on name or description."""
        workflows = self.get_all_workflows()
        if not search_term or not search_term.strip():
            return workflows

        term = search_term.strip().lower()
        return [
            w for w in workflows
            if term in w.name.lower() or term in (w.description or "").lower()
        ]

    def workflow_name_exists(self, name: str, exclude_id: Optional[str] = None) -> bool:
        target = name.strip().lower()
        return any(
            w.name.strip().lower() == target and w.id != exclude_id
            for w in self.get_all_workflows()
        )

    def get_stats(self) -> Dict[str, Any]:
        workflows = self.get_all_workflows()
        return {
            "totalWorkflows": len(workflows),
            "totalNodes": sum(w.metadata.get("nodeCount", 0) for w in workflows),
            "totalEdges": sum(w.metadata.get("edgeCount", 0) for w in workflows),
            "oldestWorkflow": min((w.created_at for w in workflows), default=None),
            "newestWorkflow": max((w.created_at for w in workflows), default=None),
        }

    def clear_all_workflows(self) -> int:
        """Delete every record. Returns the number of files removed."""
        removed = 0
        with self._lock:
            for path in self.directory.glob("*.json"):
                path.unlink()
                removed += 1
        logger.info(f"Cleared {removed} workflows")
        return removed
