"""
IDE Integration Module

VS Code workspace configuration for scaffolded projects.
"""

from slbootstrap.ide.vscode import VSCodeIntegrator, open_in_vscode, wsl_unc_path

__all__ = [
    "VSCodeIntegrator",
    "open_in_vscode",
    "wsl_unc_path",
]
