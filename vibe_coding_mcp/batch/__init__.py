"""Batch processing for toolkit operations.

This package runs sets of registry tools as one job, honoring declared
dependencies between them.

Key Components:
- resolver: Kahn's-algorithm ordering and ``$id`` back-reference substitution
- invoker: one tool call under a cooperative timeout
- BatchExecutor: sequential and wavefront-parallel execution
- JobStore: job records, cancellation flags and history
- ToolRegistry: maps tool names to async callables
"""

from .executor import BatchExecutor
from .job_store import JobStore
from .models import BatchResponse
from .models import ExecutionMode
from .models import Job
from .models import JobStatus
from .models import Operation
from .models import OperationResult
from .models import OperationStatus
from .registry import ToolRegistry
from .resolver import resolve_references
from .resolver import sort_by_dependencies

__all__ = [
    # Models
    "Operation",
    "OperationResult",
    "OperationStatus",
    "Job",
    "JobStatus",
    "ExecutionMode",
    "BatchResponse",
    # Core Components
    "BatchExecutor",
    "JobStore",
    "ToolRegistry",
    # Utilities
    "resolve_references",
    "sort_by_dependencies",
]
