"""CLI layer: argument parsing, rendering, and the error boundary.

This package is the outermost layer of the application.  It may import
from ``core``, ``infra``, ``services`` and ``context``, but no other
layer may import from ``cli``.
"""
