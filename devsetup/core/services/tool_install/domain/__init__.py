"""
L1 Domain — pure functions over tool definitions and failure text.

No I/O, no subprocess.
"""

from devsetup.core.services.tool_install.domain.error_classifier import (  # noqa: F401
    Classification,
    classify_failure,
)
from devsetup.core.services.tool_install.domain.registry import (  # noqa: F401
    Candidate,
    RegistryError,
    ToolRegistry,
    load_definition,
)
