"""Incremental static-asset build orchestrator.

Provides asset-class configuration, task graph combinators, a debounced file
watcher and a live-reload dev server, plus a Typer CLI.
"""

from .config import AssetClass, Mode, PathSpec, PipelineConfig, default_config, load_config
from .core import TaskUnit, concurrent, execute, sequence, transform  # re-export for convenience
from .pipeline import AssetPipeline

__version__ = "0.1.0"

__all__ = [
    "AssetClass",
    "AssetPipeline",
    "Mode",
    "PathSpec",
    "PipelineConfig",
    "TaskUnit",
    "concurrent",
    "default_config",
    "execute",
    "load_config",
    "sequence",
    "transform",
]
