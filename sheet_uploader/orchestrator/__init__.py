"""Orchestrator package - coordinates the upload queue."""
from .core import UploadOrchestrator
from .models import OrchestratorState, RunSummary
from .single_upload import SingleUploadHandler

__all__ = ["UploadOrchestrator", "OrchestratorState", "RunSummary", "SingleUploadHandler"]
