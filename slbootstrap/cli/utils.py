"""
Shared console output helpers for CLI commands and phase handlers.

Status lines go to stdout with emoji markers; errors and warnings go to
stderr. ``safe_print`` degrades to ASCII markers on consoles that cannot
encode emoji (legacy Windows code pages).
"""

import logging
import sys
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_ASCII_FALLBACKS = {
    "✅": "[OK]",
    "✓": "[OK]",
    "❌": "[ERROR]",
    "⚠️": "[WARN]",
    "⚠": "[WARN]",
    "🔧": "[FIX]",
    "💡": "[HINT]",
    "📊": "[SUMMARY]",
    "▶": ">",
    "→": "->",
    "⏭": "[SKIP]",
    "🩺": "",
}


# ============================================================================
# User Interface / Output Formatting
# ============================================================================


def safe_print(message: str, file=None):
    """
    Print message with safe encoding handling for Windows console.

    Falls back to ASCII markers if Unicode emoji can't be encoded.
    """
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        for symbol, replacement in _ASCII_FALLBACKS.items():
            message = message.replace(symbol, replacement)
        print(message.encode("ascii", "replace").decode("ascii"), file=file)


def print_box(text: str, width: int = 79, char: str = "="):
    """Print text in a box for emphasis."""
    safe_print(char * width)
    safe_print(text)
    safe_print(char * width)


def print_step(message: str):
    """Announce the start of a stage."""
    safe_print(f"\n▶ {message}")


def print_success(message: str):
    safe_print(f"  ✓ {message}")


def print_info(message: str):
    safe_print(f"  {message}")


def print_skip(message: str):
    safe_print(f"  ⏭ {message}")


def print_error(message: str, details: Optional[str] = None):
    """Print error message to stderr in consistent format."""
    safe_print(f"❌ ERROR: {message}", file=sys.stderr)
    if details:
        safe_print(f"  {details}", file=sys.stderr)


def print_warning(message: str):
    """Print warning message to stderr."""
    safe_print(f"⚠️  WARNING: {message}", file=sys.stderr)


def format_success_message(
    title: str,
    details: Dict[str, Any],
    next_steps: Optional[list] = None,
    width: int = 79,
) -> str:
    """
    Format a standardized success message.

    Args:
        title: Success message title
        details: Key-value pairs to display
        next_steps: Optional list of next step instructions
        width: Width of message box
    """
    lines = ["=" * width, title, "=" * width, ""]

    for key, value in details.items():
        lines.append(f"{key}: {value}")

    if next_steps:
        lines.append("")
        lines.append("Next steps:")
        for step in next_steps:
            lines.append(f"  {step}")

    lines.append("")
    return "\n".join(lines)


def format_duration(seconds: float) -> str:
    """Render seconds as '42s' or '3m 05s'."""
    seconds = int(round(seconds))
    if seconds < 60:
        return f"{seconds}s"
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}m {secs:02d}s"


def confirm(prompt: str, default: bool = True, assume_yes: bool = False) -> bool:
    """
    Ask a yes/no question on stdin.

    Non-interactive sessions (no TTY) and ``assume_yes`` return the default.
    """
    if assume_yes or not sys.stdin.isatty():
        return default
    suffix = "[Y/n]" if default else "[y/N]"
    answer = input(f"{prompt} {suffix} ").strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


def prompt_value(prompt: str, default: Optional[str] = None) -> Optional[str]:
    """Ask for a value on stdin; returns default when empty or non-interactive."""
    if not sys.stdin.isatty():
        return default
    suffix = f" [{default}]" if default else ""
    answer = input(f"{prompt}{suffix}: ").strip()
    return answer or default
