"""
L0 Data — Failure classification rules.

Ordered pattern rules evaluated against a failure's text; the FIRST
match wins (unlike remediation handlers, which collect everything).
Patterns are case-insensitive regexes.

``CATEGORY_ADVICE`` covers failures the orchestrator already knows the
category of (no backend at all, nothing to try, not functional after
install, cancelled); those skip pattern matching.

``FALLBACK_ADVICE`` applies when nothing matches.
"""

from __future__ import annotations

FAILURE_RULES: list[dict] = [

    # ── network / timeout ───────────────────────────────────────
    {
        "category": "network",
        "label": "Network or timeout",
        "severity": "medium",
        "pattern": (
            r"timed? ?out|timeout|could not resolve|name resolution|"
            r"unable to connect|connection (?:refused|reset|closed)|"
            r"\bnetwork\b|\bproxy\b|\bssl\b|\btls\b|\bcertificate\b|download(?:ing)? failed|"
            r"failed to download|0x80072ee[27]|0x80072efd"
        ),
        "suggestions": [
            "Check the internet connection and any proxy settings, then retry.",
            "Transient network failures often succeed on a later run; retry the install.",
            "If installs are slow rather than failing, raise the limit with --timeout.",
            "Behind a corporate proxy, configure it for the package manager "
            "(e.g. `choco config set proxy <url>`).",
        ],
    },

    # ── permission / access denied ──────────────────────────────
    {
        "category": "permission",
        "label": "Permission denied",
        "severity": "high",
        "pattern": (
            r"access (?:is )?denied|permission denied|unauthori[sz]ed|"
            r"requires? (?:elevation|elevated|admin)|run as administrator|"
            r"not running (?:as|from) an? (?:elevated|admin)|0x80070005|eacces"
        ),
        "suggestions": [
            "Re-run from an elevated (Administrator) terminal.",
            "Chocolatey installs machine-wide and needs elevation; scoop installs "
            "per-user and does not.",
            "Check that antivirus or device management policy is not blocking the installer.",
        ],
    },

    # ── not found ───────────────────────────────────────────────
    {
        "category": "not_found",
        "label": "Package not found",
        "severity": "medium",
        "pattern": (
            r"no package found|no packages? (?:was |were )?found|"
            r"no (?:applicable|matching) (?:package|installer)|"
            r"couldn'?t find manifest|unable to find|not found|"
            r"is not recognized as|0x8a150014"
        ),
        "suggestions": [
            "Check the package identifier exists: `winget search <name>`, "
            "`choco search <name>`, or `scoop search <name>`.",
            "Refresh the package sources (`winget source update`, `scoop update`) and retry.",
            "For scoop, add the bucket that provides the package "
            "(e.g. `scoop bucket add extras` or `scoop bucket add nerd-fonts`).",
        ],
    },

    # ── execution policy ────────────────────────────────────────
    {
        "category": "execution_policy",
        "label": "Script execution blocked",
        "severity": "high",
        "pattern": (
            r"execution ?polic|running scripts is disabled|about_execution_policies|"
            r"cannot be loaded because|is not digitally signed"
        ),
        "suggestions": [
            "Allow local scripts for the current user: "
            "`Set-ExecutionPolicy -Scope CurrentUser RemoteSigned`.",
            "Unblock downloaded scripts with `Unblock-File` before running them.",
        ],
    },

    # ── module / dependency ─────────────────────────────────────
    {
        "category": "dependency",
        "label": "Missing dependency",
        "severity": "medium",
        "pattern": (
            r"\bmodules?\b|dependenc|prerequisite|vcredist|visual c\+\+|"
            r"\.net (?:framework|runtime)|missing dll|\.dll was not found|0x80131500"
        ),
        "suggestions": [
            "Install the runtime or dependency named in the error, then retry.",
            "Some packages need the Visual C++ redistributable or a .NET runtime first.",
            "Open a new terminal so newly installed dependencies are on PATH.",
        ],
    },
]


CATEGORY_ADVICE: dict[str, dict] = {
    "no_backend": {
        "label": "No package manager available",
        "severity": "critical",
        "suggestions": [
            "Install a supported package manager: winget (App Installer from the "
            "Microsoft Store), Chocolatey (https://chocolatey.org/install) or "
            "scoop (https://scoop.sh).",
            "Open a new terminal after installing it so it is on PATH.",
            "Run `devsetup tools backends --reprobe` to confirm it is detected.",
        ],
    },
    "no_candidate": {
        "label": "Not packaged for the available backends",
        "severity": "high",
        "suggestions": [
            "Add a package identifier for an available backend in devsetup.yml "
            "under `tools:`.",
        ],
    },
    "verification": {
        "label": "Installed but not functional",
        "severity": "high",
        "suggestions": [
            "Open a new terminal; the installer may have updated PATH for new sessions only.",
            "Check the tool runs by hand (e.g. `<tool> --version`) and look for "
            "missing runtime errors.",
            "Reinstall with --force if a previous partial install left a broken copy.",
        ],
    },
    "cancelled": {
        "label": "Cancelled",
        "severity": "low",
        "suggestions": [
            "Re-run the install when ready; already-installed tools are skipped.",
        ],
    },
    "unknown_tool": {
        "label": "Unknown tool",
        "severity": "low",
        "suggestions": [
            "Run `devsetup tools list` to see the tools that can be installed.",
            "Define the tool in devsetup.yml under `tools:` with its package identifiers.",
        ],
    },
}


FALLBACK_ADVICE: dict = {
    "category": "unknown",
    "label": "Unrecognized failure",
    "severity": "medium",
    "suggestions": [
        "Re-run with --debug to see the full package-manager output.",
        "Try the install directly with the package manager to see its own error.",
        "Check the package manager's log files for details.",
    ],
}
