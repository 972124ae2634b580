"""
TagWeave Engine Package.

The processing orchestrator tying watcher, tag processor, dependency index
and output writer together.
Requires Python 3.11+.
"""

from engine.orchestrator import ProcessingOrchestrator

__all__ = ["ProcessingOrchestrator"]
