"""
strangeloop bootstrap CLI argument parser.

This module implements the command-line interface using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from slbootstrap.cli.utils import print_error
from slbootstrap.core.exceptions import BootstrapError, ConfigError

# Get version from package
try:
    from importlib.metadata import version

    __version__ = version("strangeloop-bootstrap")
except Exception:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

COMMAND_MAP = {
    "setup": "slbootstrap.cli.commands.setup",
    "phases": "slbootstrap.cli.commands.listing",
    "stages": "slbootstrap.cli.commands.listing",
    "modes": "slbootstrap.cli.commands.listing",
    "doctor": "slbootstrap.cli.commands.doctor",
    "platform": "slbootstrap.cli.commands.platform",
    "init": "slbootstrap.cli.commands.init",
    "vscode": "slbootstrap.cli.commands.vscode",
    "pipelines": "slbootstrap.cli.commands.pipelines",
    "state": "slbootstrap.cli.commands.state",
}


GLOBAL_FLAGS = ("--verbose", "-v", "--quiet", "-q")
TOP_LEVEL_EXITS = ("--help", "-h", "--version")


def _with_default_command(args: List[str]) -> List[str]:
    """Insert "setup" before the first non-global argument when no command is given."""
    index = 0
    while index < len(args):
        arg = args[index]
        if arg in COMMAND_MAP or arg in TOP_LEVEL_EXITS:
            return args
        if arg in GLOBAL_FLAGS or arg.startswith("--config="):
            index += 1
        elif arg == "--config":
            index += 2
        else:
            break
    return args[:index] + ["setup"] + args[index:]


class CLI:
    """strangeloop bootstrap command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="slboot",
            description="strangeloop bootstrap - set up a strangeloop development workstation",
            epilog='Use "slboot COMMAND --help" for command-specific help. '
            'Without a command, "setup" runs.',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"strangeloop-bootstrap {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to bootstrap_config.yaml (default: $SLBOOT_CONFIG or bundled)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_setup_command(subparsers)
        self._add_listing_commands(subparsers)
        self._add_doctor_command(subparsers)
        self._add_platform_command(subparsers)
        self._add_init_command(subparsers)
        self._add_vscode_command(subparsers)
        self._add_pipelines_command(subparsers)
        self._add_state_command(subparsers)

        return parser

    @staticmethod
    def _add_project_arguments(parser):
        parser.add_argument("--loop-name", metavar="LOOP", help="Loop to scaffold")
        parser.add_argument("--project-name", metavar="NAME", help="Name of the new project")
        parser.add_argument(
            "--project-path",
            metavar="DIR",
            help="Parent directory of the new project (default: current directory, "
            "or ~/projects inside WSL)",
        )

    @staticmethod
    def _add_devops_arguments(parser, project_flag: str):
        parser.add_argument(
            "--organization", metavar="ORG", help="Azure DevOps organization name or URL"
        )
        parser.add_argument(
            project_flag, dest="devops_project", metavar="PROJECT", help="Azure DevOps project"
        )
        parser.add_argument("--repository", metavar="REPO", help="Azure Repos repository")
        parser.add_argument(
            "--branch", default="main", metavar="BRANCH", help="Default branch (default: main)"
        )
        parser.add_argument(
            "--max-parallel",
            type=int,
            metavar="N",
            help="Pipelines created concurrently (default: from configuration, 4)",
        )

    def _add_setup_command(self, subparsers):
        """Add 'setup' subcommand."""
        parser = subparsers.add_parser(
            "setup",
            help="Run the multi-phase workstation setup",
            description="Install prerequisites, prepare the environment and bootstrap a project",
        )
        parser.add_argument("--mode", metavar="MODE", help="Setup mode (default: full)")
        parser.add_argument(
            "--start-from-phase", metavar="PHASE", help="Skip phases before PHASE (number or name)"
        )
        parser.add_argument(
            "--start-from-stage", metavar="STAGE", help="Skip stages before STAGE"
        )
        parser.add_argument("--only-stage", metavar="STAGE", help="Run a single stage")
        parser.add_argument(
            "--skip-stages",
            action="append",
            metavar="STAGES",
            help="Comma-separated stages to skip (repeatable)",
        )
        self._add_project_arguments(parser)
        parser.add_argument(
            "--what-if",
            "--whatif",
            "--dry-run",
            dest="what_if",
            action="store_true",
            help="Show what would be done without making changes",
        )
        parser.add_argument(
            "--check-only",
            "--check",
            dest="check_only",
            action="store_true",
            help="Only report status, install nothing",
        )
        parser.add_argument(
            "--no-wsl", action="store_true", help="Skip WSL configuration on Windows"
        )
        parser.add_argument(
            "--yes", "-y", action="store_true", help="Assume yes; never prompt"
        )
        parser.add_argument(
            "--force", action="store_true", help="Scaffold into a non-empty directory"
        )
        self._add_devops_arguments(parser, "--devops-project")
        listing = parser.add_mutually_exclusive_group()
        listing.add_argument("--list-phases", action="store_true", help="List phases and exit")
        listing.add_argument("--list-stages", action="store_true", help="List stages and exit")
        listing.add_argument("--list-modes", action="store_true", help="List modes and exit")

    def _add_listing_commands(self, subparsers):
        """Add 'phases', 'stages' and 'modes' subcommands."""
        subparsers.add_parser("phases", help="List setup phases")
        subparsers.add_parser("stages", help="List stages of every phase")
        subparsers.add_parser("modes", help="List setup modes and execution modifiers")

    def _add_doctor_command(self, subparsers):
        """Add 'doctor' subcommand."""
        parser = subparsers.add_parser(
            "doctor",
            help="Diagnose the workstation",
            description="Check platform, WSL, tools and Azure sign-in",
        )
        parser.add_argument(
            "--fix",
            action="store_true",
            help="Install missing tools and apply other automatic fixes",
        )
        parser.add_argument(
            "--no-wsl", action="store_true", help="Check Linux tools on the Windows host"
        )

    def _add_platform_command(self, subparsers):
        """Add 'platform' subcommand."""
        subparsers.add_parser("platform", help="Show the detected platform")

    def _add_init_command(self, subparsers):
        """Add 'init' subcommand."""
        parser = subparsers.add_parser(
            "init",
            help="Create a project from a loop",
            description="Run project creation (phase 3 without pipelines)",
        )
        self._add_project_arguments(parser)
        parser.add_argument(
            "--force", action="store_true", help="Scaffold into a non-empty directory"
        )
        parser.add_argument("--no-git", action="store_true", help="Skip git initialization")
        parser.add_argument(
            "--no-vscode", action="store_true", help="Skip VS Code configuration"
        )
        parser.add_argument(
            "--no-wsl", action="store_true", help="Do not use WSL on Windows"
        )
        parser.add_argument("--yes", "-y", action="store_true", help="Never prompt")
        parser.add_argument(
            "--what-if",
            dest="what_if",
            action="store_true",
            help="Show what would be done without making changes",
        )

    def _add_vscode_command(self, subparsers):
        """Add 'vscode' subcommand."""
        parser = subparsers.add_parser(
            "vscode",
            help="Configure VS Code for a project",
            description="Generate .vscode/settings.json and extensions.json, then open VS Code",
        )
        parser.add_argument(
            "--project-path",
            type=Path,
            default=Path.cwd(),
            metavar="DIR",
            help="Project root (default: current directory)",
        )
        parser.add_argument("--loop-name", metavar="LOOP", help="Loop the project came from")
        parser.add_argument(
            "--no-open", action="store_true", help="Write configuration without opening VS Code"
        )

    def _add_pipelines_command(self, subparsers):
        """Add 'pipelines' subcommand."""
        parser = subparsers.add_parser(
            "pipelines",
            help="Generate and register 1ES Azure DevOps pipelines",
            description="Write .pipelines/*.yml and create the pipelines in Azure DevOps",
        )
        parser.add_argument(
            "--project-path",
            type=Path,
            default=Path.cwd(),
            metavar="DIR",
            help="Project root (default: current directory)",
        )
        parser.add_argument("--loop-name", metavar="LOOP", help="Loop the project came from")
        self._add_devops_arguments(parser, "--project")
        parser.add_argument(
            "--templates-only",
            action="store_true",
            help="Only write the YAML files, do not create pipelines",
        )
        parser.add_argument(
            "--force", action="store_true", help="Overwrite existing pipeline files"
        )
        parser.add_argument(
            "--what-if",
            dest="what_if",
            action="store_true",
            help="Show what would be done without making changes",
        )
        parser.add_argument("--yes", "-y", action="store_true", help="Never prompt")

    def _add_state_command(self, subparsers):
        """Add 'state' subcommand."""
        parser = subparsers.add_parser(
            "state",
            help="Show or reset the run state",
            description="Show completed phases and stages recorded by previous runs",
        )
        parser.add_argument("--reset", action="store_true", help="Forget all recorded state")
        parser.add_argument("--json", action="store_true", help="Print raw JSON")
        parser.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        args = list(sys.argv[1:] if args is None else args)
        return self.parser.parse_args(_with_default_command(args))

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 success, 1 failure, 2 usage or configuration error,
            130 interrupted)
        """
        parsed_args = self.parse_args(args)

        # Configure logging
        self._configure_logging(parsed_args)

        # Dispatch to command handler
        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return EXIT_INTERRUPTED  # Standard exit code for SIGINT
        except ConfigError as e:
            print_error(str(e))
            return EXIT_USAGE
        except BootstrapError as e:
            print_error(str(e))
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return EXIT_FAILURE
        except Exception as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return EXIT_FAILURE

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        module_name = COMMAND_MAP.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return EXIT_USAGE

        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            logger.error(f"Failed to load command module: {e}")
            if args.verbose:
                import traceback

                traceback.print_exc()
            return EXIT_FAILURE

        # Call run() function in module
        if not hasattr(module, "run"):
            logger.error(f"Command module {module_name} has no run() function")
            return EXIT_FAILURE

        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
