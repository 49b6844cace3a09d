"""
Ingest: paths in, content-addressed cards out.

Components:
- walker: ignore-aware traversal and document detection
- pipeline: thread-pool parsing fanned into one persistence consumer
"""

from recall.ingest.pipeline import CardWalker, ingest
from recall.ingest.walker import FileSearchStats, is_document, iter_files

__all__ = ["CardWalker", "FileSearchStats", "ingest", "is_document", "iter_files"]
