import sys
import logging
import os
from typing import List, Optional

DEFAULT_LOG_LEVEL = logging.DEBUG
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
logger = logging.getLogger(__name__)


def find_log_file_arg(argv: List[str]) -> Optional[str]:
    """Pre-parses --log-file from argv so logging can be configured before argparse runs."""
    for arg in argv:
        if arg.startswith("--log-file="):
            potential_path = arg.split("=", 1)[1]
            if not potential_path:
                print("WARNING: --log-file= provided without a path. Ignoring.", file=sys.stderr)
                return None
            return potential_path
    if "--log-file" not in argv:
        return None
    idx = argv.index("--log-file")
    if idx + 1 >= len(argv):
        print("WARNING: --log-file provided without a path. Ignoring.", file=sys.stderr)
        return None
    potential_path = argv[idx + 1]
    # Basic check: ensure it's not another flag
    if potential_path.startswith("-"):
        print(f"WARNING: --log-file provided but the next argument '{potential_path}' looks like another flag. Ignoring --log-file.", file=sys.stderr)
        return None
    return potential_path


def setup_logging(argv: Optional[List[str]] = None, level: int = DEFAULT_LOG_LEVEL) -> Optional[str]:
    """
    Configures the root logger with a stderr handler and, if --log-file is given,
    a file handler. Returns the absolute log file path in use, if any.
    """
    log_file_path = find_log_file_arg(sys.argv[1:] if argv is None else argv)

    log_formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear() # Clear any existing handlers (e.g., from basicConfig if called elsewhere)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(log_formatter)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    abs_log_file_path = None
    if log_file_path:
        try:
            abs_log_file_path = os.path.abspath(log_file_path)
            log_dir = os.path.dirname(abs_log_file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = logging.FileHandler(abs_log_file_path, mode='a', encoding='utf-8')
            file_handler.setFormatter(log_formatter)
            file_handler.setLevel(level)
            root_logger.addHandler(file_handler)
            logger.info(f"Logging to file: {abs_log_file_path}")
        except OSError as e:
            # Console logging still works.
            logger.error(f"Error setting up log file {log_file_path}: {e}. Logging to console only.")
            abs_log_file_path = None

    # Quiet verbose library loggers
    logging.getLogger('PySide6').setLevel(logging.INFO)
    return abs_log_file_path
