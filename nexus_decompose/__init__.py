"""
Nexus Decompose - task decomposition and dependency scheduling.

Turn a confidence-scored requirement tree into atomic tasks, a validated
dependency graph, a critical path, and bounded parallel execution batches.
"""

__version__ = "0.1.0"
__author__ = "Nexus Team"

from nexus_decompose.core.engine import DecompositionEngine, decompose

__all__ = ["DecompositionEngine", "decompose", "__version__"]
