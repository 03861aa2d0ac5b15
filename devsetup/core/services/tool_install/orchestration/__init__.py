"""L5 Orchestration — the install attempt loop."""

from devsetup.core.services.tool_install.orchestration.orchestrator import (  # noqa: F401
    InstallOrchestrator,
    InstallState,
    build_orchestrator,
)
