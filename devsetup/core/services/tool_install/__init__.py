"""
Tool install — package-manager backed installer for developer tools.

Layered like the rest of the services, lowest first:

    data/           L0  static catalog and failure rules (no logic)
    domain/         L1  registry and failure classification (pure)
    detection/      L3  backend probing, verification, PATH (read-only)
    execution/      L4  subprocess runner, installer, rollback (writes)
    orchestration/  L5  the attempt loop and multi-tool fan-out

Import from the subpackages directly; this module re-exports nothing
so that importing one layer never drags in the layers above it.
"""
