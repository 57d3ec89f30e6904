"""Generator distribution and invocation harness."""

__version__ = "0.1.0"
