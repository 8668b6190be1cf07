"""Orchestrator package - coordinates the fetch/upload pipeline."""
from .core import UploadOrchestrator
from .models import BatchUploadResult

__all__ = ["UploadOrchestrator", "BatchUploadResult"]
