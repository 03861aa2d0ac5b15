"""
L0 Data — Tool catalog.

Pure data, no logic.  Keys are tool names; each entry maps backend
names to one package identifier or an ordered list of alternates
(tried in order).  Shapes are normalized by ``domain.registry``.

Entry fields:
    label         display name
    packages      {"winget" | "choco" | "scoop": id | [id, ...]}
    command       executable used for verification (default: the key);
                  None for assets that are not commands (fonts)
    version_args  arguments for the functional check (default --version)
    manual_url    where to download by hand when every backend fails
    built_in      ships with a stock Windows install
"""

from __future__ import annotations

TOOL_CATALOG: dict[str, dict] = {

    # ── Version control ─────────────────────────────────────────

    "git": {
        "label": "Git",
        "packages": {"winget": "Git.Git", "choco": "git", "scoop": "git"},
        "manual_url": "https://git-scm.com/download/win",
    },
    "gh": {
        "label": "GitHub CLI",
        "packages": {"winget": "GitHub.cli", "choco": "gh", "scoop": "gh"},
        "manual_url": "https://cli.github.com/",
    },
    "lazygit": {
        "label": "lazygit",
        "packages": {
            "winget": "JesseDuffield.lazygit",
            "choco": "lazygit",
            "scoop": "lazygit",
        },
    },
    "delta": {
        "label": "delta",
        "packages": {"winget": "dandavison.delta", "choco": "delta", "scoop": "delta"},
    },

    # ── Search & navigation ─────────────────────────────────────

    "fzf": {
        "label": "fzf",
        "packages": {"winget": "junegunn.fzf", "choco": "fzf", "scoop": "fzf"},
        "manual_url": "https://github.com/junegunn/fzf/releases",
    },
    "ripgrep": {
        "label": "ripgrep",
        "packages": {
            "winget": "BurntSushi.ripgrep.MSVC",
            "choco": "ripgrep",
            "scoop": "ripgrep",
        },
        "command": "rg",
        "manual_url": "https://github.com/BurntSushi/ripgrep/releases",
    },
    "fd": {
        "label": "fd",
        "packages": {"winget": "sharkdp.fd", "choco": "fd", "scoop": "fd"},
    },
    "bat": {
        "label": "bat",
        "packages": {"winget": "sharkdp.bat", "choco": "bat", "scoop": "bat"},
    },
    "eza": {
        "label": "eza",
        "packages": {"winget": "eza-community.eza", "scoop": "eza"},
    },
    "zoxide": {
        "label": "zoxide",
        "packages": {"winget": "ajeetdsouza.zoxide", "choco": "zoxide", "scoop": "zoxide"},
    },
    "jq": {
        "label": "jq",
        # jq moved from stedolan to jqlang; older winget sources only know the former
        "packages": {
            "winget": ["jqlang.jq", "stedolan.jq"],
            "choco": "jq",
            "scoop": "jq",
        },
        "manual_url": "https://jqlang.github.io/jq/download/",
    },

    # ── Editors & shells ────────────────────────────────────────

    "neovim": {
        "label": "Neovim",
        "packages": {"winget": "Neovim.Neovim", "choco": "neovim", "scoop": "neovim"},
        "command": "nvim",
        "manual_url": "https://github.com/neovim/neovim/releases",
    },
    "pwsh": {
        "label": "PowerShell 7",
        "packages": {
            "winget": "Microsoft.PowerShell",
            "choco": "powershell-core",
            "scoop": "pwsh",
        },
        "manual_url": "https://aka.ms/powershell-release?tag=stable",
    },
    "starship": {
        "label": "Starship",
        "packages": {"winget": "Starship.Starship", "choco": "starship", "scoop": "starship"},
    },
    "oh-my-posh": {
        "label": "Oh My Posh",
        "packages": {
            "winget": "JanDeDobbeleer.OhMyPosh",
            "choco": "oh-my-posh",
            "scoop": "oh-my-posh",
        },
        "version_args": ["version"],
    },

    # ── Runtimes ────────────────────────────────────────────────

    "nodejs": {
        "label": "Node.js LTS",
        "packages": {
            "winget": "OpenJS.NodeJS.LTS",
            "choco": "nodejs-lts",
            "scoop": "nodejs-lts",
        },
        "command": "node",
        "manual_url": "https://nodejs.org/en/download",
    },
    "python": {
        "label": "Python 3",
        "packages": {
            "winget": ["Python.Python.3.12", "Python.Python.3.11"],
            "choco": "python",
            "scoop": "python",
        },
        "manual_url": "https://www.python.org/downloads/windows/",
    },

    # ── Shipped with Windows ────────────────────────────────────

    "curl": {
        "label": "curl",
        "packages": {"winget": "cURL.cURL", "choco": "curl", "scoop": "curl"},
        "built_in": True,
    },
    "openssh": {
        "label": "OpenSSH client",
        "packages": {"winget": "Microsoft.OpenSSH.Beta", "choco": "openssh"},
        "command": "ssh",
        "version_args": ["-V"],
        "built_in": True,
    },
    "tar": {
        "label": "bsdtar",
        "packages": {},
        "built_in": True,
    },

    # ── Fonts (not commands: verified by the installer's exit code only) ──

    "cascadia-code-nf": {
        "label": "Cascadia Code Nerd Font",
        "packages": {
            "choco": ["cascadia-code-nerd-font", "cascadiacodepl"],
            "scoop": ["CascadiaCode-NF", "Cascadia-Code"],
        },
        "command": None,
        "manual_url": "https://github.com/ryanoasis/nerd-fonts/releases",
    },
    "firacode-nf": {
        "label": "FiraCode Nerd Font",
        "packages": {
            "choco": ["nerd-fonts-firacode", "firacodenf"],
            "scoop": "FiraCode-NF",
        },
        "command": None,
        "manual_url": "https://github.com/ryanoasis/nerd-fonts/releases",
    },
}
