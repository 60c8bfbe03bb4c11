"""
Kiln - local build orchestration for multi-application repositories.

This package discovers the applications inside a source tree, builds each one
with the flavor matching its declared type, and publishes the result into the
project's local web root.
"""

__version__ = "0.1.0"
