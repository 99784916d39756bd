"""!
@brief Wine Janitor package root.
@details Modules under this namespace index the applications registered in a
Wine prefix, translate their Windows paths to host paths, and remove them
together with the menu, desktop, icon and MIME leftovers they leave behind.
"""

__all__ = [
    "main",
    "detect",
    "registry_tools",
    "fs_tools",
    "uninstall",
    "artifacts",
    "capabilities",
    "wine",
    "elevation",
    "exec_utils",
    "logging_ext",
    "confirm",
    "ui",
    "constants",
    "version",
]
