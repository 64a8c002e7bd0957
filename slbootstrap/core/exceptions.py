"""
Centralized exception hierarchy for strangeloop bootstrap.

Every error raised by this package derives from BootstrapError so the CLI
can report it uniformly and pick an exit code.
"""

from typing import Optional, Sequence


# ============================================================================
# Base Exceptions
# ============================================================================


class BootstrapError(Exception):
    """Base exception for all strangeloop bootstrap errors."""

    pass


# ============================================================================
# Configuration / Platform
# ============================================================================


class ConfigError(BootstrapError):
    """Configuration parsing or validation error."""

    pass


class PlatformError(BootstrapError):
    """Raised when the host platform is unsupported or cannot be detected."""

    pass


class StateError(BootstrapError):
    """Raised when the run state file cannot be read or written."""

    pass


# ============================================================================
# External commands
# ============================================================================


class CommandError(BootstrapError):
    """An external command exited with a non-zero status."""

    def __init__(
        self,
        args: Sequence[str],
        returncode: int,
        stderr: str = "",
        message: Optional[str] = None,
    ):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr
        if message is None:
            message = f"Command failed ({returncode}): {' '.join(self.command)}"
            if stderr.strip():
                message += f"\n  {stderr.strip().splitlines()[-1]}"
        super().__init__(message)


class DownloadError(BootstrapError):
    """Raised when an installer download fails after all retries."""

    pass


class ChecksumError(DownloadError):
    """Raised when a downloaded file does not match its expected hash."""

    pass


# ============================================================================
# Tool Exceptions
# ============================================================================


class ToolError(BootstrapError):
    """Base exception for tool probe and installer errors."""

    pass


class ToolNotFoundError(ToolError):
    """A required tool is not installed."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool not found: {tool_name}")


class ToolInstallError(ToolError):
    """Installing or upgrading a tool failed."""

    pass


class ToolVersionError(ToolError):
    """Installed tool is older than the configured minimum."""

    def __init__(self, tool_name: str, version: str, minimum: str):
        self.tool_name = tool_name
        self.version = version
        self.minimum = minimum
        super().__init__(f"{tool_name} {version} is older than required {minimum}")


# ============================================================================
# Orchestration Exceptions
# ============================================================================


class PhaseError(BootstrapError):
    """Raised when a phase cannot be planned or executed."""

    pass


class StageError(PhaseError):
    """Raised when a single stage fails."""

    pass


class ProjectError(BootstrapError):
    """Raised when project scaffolding fails."""

    pass


class PipelineError(BootstrapError):
    """Raised when Azure DevOps pipeline setup fails."""

    pass
