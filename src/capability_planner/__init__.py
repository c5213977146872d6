"""Plan construction and dependency-gated execution for capability backends."""

__version__ = "0.1.0"
