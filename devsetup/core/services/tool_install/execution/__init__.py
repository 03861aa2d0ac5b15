"""
L4 Execution — functions that WRITE to the system.

Subprocess calls, package installs, scratch directories.
"""

from devsetup.core.services.tool_install.execution.installer import (  # noqa: F401
    BackendInstaller,
    DryRunInstaller,
    InstallOutcome,
)
from devsetup.core.services.tool_install.execution.rollback import (  # noqa: F401
    InstallationContext,
    RollbackContext,
)
from devsetup.core.services.tool_install.execution.subprocess_runner import (  # noqa: F401
    CommandResult,
    run_command,
)
