"""Work Review: verification workflow for employee work entries."""

__version__ = "1.0.0"
