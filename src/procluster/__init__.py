"""procluster: a memory-aware supervisor for a fixed pool of worker processes."""

__version__ = "0.1.0"
