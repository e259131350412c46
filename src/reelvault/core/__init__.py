"""Core processing engine: task queue, retry layer and organizing pipeline."""
