"""Organizing workflow: per-item pipeline and batch coordination."""

from reelvault.core.organizer.batch import BatchCoordinator, BatchSummary
from reelvault.core.organizer.file_mover import FileRelocator
from reelvault.core.organizer.pipeline import (
    ItemPipeline,
    PipelineExecutors,
    PipelineRun,
    PipelineState,
)

__all__ = [
    "BatchCoordinator",
    "BatchSummary",
    "FileRelocator",
    "ItemPipeline",
    "PipelineExecutors",
    "PipelineRun",
    "PipelineState",
]
