"""
linkerd-await package.

Waits for the local Linkerd proxy to report readiness before running a
program, and optionally supervises that program so the proxy is told to
shut down once it exits.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
