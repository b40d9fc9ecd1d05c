# cli.py
import argparse
import logging
import sys
from typing import Optional, Tuple, Any, List, Dict

from utils.config import merge_config

logger = logging.getLogger(__name__)

# Single source of truth for CLI argument definitions
# Each entry is a tuple: (list_of_flags_or_name, options_dictionary)
ARG_DEFINITIONS: List[Tuple[List[str], Dict[str, Any]]] = [
    (["--theme"],               {"type": str, "choices": ["auto", "light", "dark"], "help": "Application theme (default: light)"}),
    (["--confirmed-load-all"],  {"action": "store_true", "help": "Only mark images as loaded once their fetch succeeds when using 'Load All Images'"}),
    (["--optimistic-load-all"], {"action": "store_true", "help": "Mark every image as loaded as soon as 'Load All Images' is clicked (default)"}),
    (["--timeout"],             {"type": int, "dest": "transfer_timeout_sec", "help": "Transfer timeout per image in seconds (0 disables it)"}),
    (["--log-file"],            {"type": str, "dest": "log_file", "help": "Path to a file for logging output."}),
]

class ArgumentParserError(Exception):
    """Custom exception for parsing errors when GUI is active."""
    pass

class ArgumentParserHelpRequested(Exception):
    """Custom exception for when help is requested and GUI is active."""
    def __init__(self, help_text: str):
        super().__init__("Help requested")
        self.help_text = help_text

class CustomArgumentParser(argparse.ArgumentParser):
    """
    In console mode behaves like argparse. In GUI mode errors and help raise
    exceptions instead of printing and exiting, so they can be shown in a dialog.
    """
    def __init__(self, *args, is_console_mode: bool = False, **kwargs):
        self.is_console_mode = is_console_mode
        super().__init__(*args, **kwargs)

    def error(self, message: str):
        if self.is_console_mode:
            self.print_usage(sys.stderr)
            args = {'prog': self.prog, 'message': message}
            self.exit(2, '%(prog)s: error: %(message)s\n' % args)
        else:
            raise ArgumentParserError(message)

    def _print_message(self, message: str, file = None):
        if self.is_console_mode:
            super()._print_message(message, file)

    def exit(self, status: int = 0, message: Optional[str] = None):
        if message:
            self._print_message(message, sys.stderr)

        if self.is_console_mode:
            sys.exit(status)
        if status == 0:
            raise ArgumentParserHelpRequested(self.format_help())
        raise ArgumentParserError(message or "Argument parsing caused an exit.")


def build_parser(is_console_mode: bool) -> CustomArgumentParser:
    parser = CustomArgumentParser(
        description="Picsum Rows: load and clear sample images",
        is_console_mode=is_console_mode,
    )
    for flags_or_name, options_dict in ARG_DEFINITIONS:
        parser.add_argument(*flags_or_name, **options_dict)
    return parser


def _parse_arguments(argv: List[str], is_console_mode: bool) -> Tuple[argparse.Namespace, CustomArgumentParser]:
    """
    Parses command-line arguments.
    Raises ArgumentParserError for parsing errors in GUI mode.
    Raises ArgumentParserHelpRequested for help requests in GUI mode.
    """
    parser = build_parser(is_console_mode)
    args = parser.parse_args(argv)

    if args.confirmed_load_all and args.optimistic_load_all:
        parser.error("Cannot specify both --confirmed-load-all and --optimistic-load-all")

    return args, parser


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.theme is not None:
        overrides["theme"] = args.theme
    if args.confirmed_load_all:
        overrides["optimistic_load_all"] = False
    elif args.optimistic_load_all:
        overrides["optimistic_load_all"] = True
    if args.transfer_timeout_sec is not None:
        overrides["transfer_timeout_sec"] = args.transfer_timeout_sec
    return overrides


def process_cli_arguments(
    user_config: Dict[str, Any],
    is_console_mode: bool,
    argv: Optional[List[str]] = None
) -> Tuple[Optional[Dict[str, Any]], Optional[str], Optional[str]]:
    """
    Parses CLI arguments and layers them over user_config.

    Returns:
        (initial_ui_config, error_message, help_text). Exactly one is not None
        in GUI mode. In console mode, errors and help print and exit instead.
    """
    argv = sys.argv[1:] if argv is None else argv
    try:
        args, parser = _parse_arguments(argv, is_console_mode)
        initial_ui_config, warnings = merge_config(user_config, _cli_overrides(args))
        if warnings:
            parser.error("; ".join(warnings))
    except ArgumentParserError as e:
        logger.error(f"CLI argument error: {e}")
        return None, str(e), None
    except ArgumentParserHelpRequested as e:
        return None, None, e.help_text

    logger.info(f"Effective settings after CLI: {initial_ui_config}")
    return initial_ui_config, None, None
