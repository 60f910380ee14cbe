"""
Configuration constants for linkerd-await.
"""

# Proxy admin server
ADMIN_HOST = "localhost"
DEFAULT_ADMIN_PORT = 4191
READY_PATH = "/ready"
SHUTDOWN_PATH = "/shutdown"

# Readiness polling
DEFAULT_BACKOFF = "1s"  # Wait after a failed readiness check
READY_REQUEST_TIMEOUT_S = 5.0  # Per-attempt bound, independent of --timeout

# Shutdown notification
SHUTDOWN_REQUEST_TIMEOUT_S = 5.0  # Upper bound so exit never hangs on the proxy

# Environment
ENV_DISABLED = "LINKERD_AWAIT_DISABLED"
ENV_DISABLED_LEGACY = "LINKERD_DISABLED"
ENV_VERBOSE = "LINKERD_AWAIT_VERBOSE"
ENV_CONFIG = "LINKERD_AWAIT_CONFIG"

# Exit codes (from sysexits.h)
EX_OK = 0
EX_USAGE = 2  # Bad command line; the code click uses for usage errors
EX_UNAVAILABLE = 69  # Proxy did not become ready in time
EX_OSERR = 71  # Could not exec/fork the program, or no exit code available
EX_CONFIG = 78  # Configuration file unreadable or invalid

USER_AGENT = "linkerd-await"
