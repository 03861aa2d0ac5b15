"""devsetup — install developer command-line tools through package managers."""

__version__ = "0.1.0"
