"""
L3 Detection — read-only probes of the host.

Backend availability, tool verification, and the process PATH.
"""

from devsetup.core.services.tool_install.detection.backend_probe import (  # noqa: F401
    DEFAULT_BACKEND_CACHE,
    BackendCache,
    BackendProber,
)
from devsetup.core.services.tool_install.detection.environment import (  # noqa: F401
    ENV_LOCK,
    path_owner,
    pin_path,
    refresh_path,
    snapshot_path,
    withdraw_path,
)
from devsetup.core.services.tool_install.detection.tool_version import (  # noqa: F401
    ToolVerifier,
    VerificationResult,
)
