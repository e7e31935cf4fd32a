import logging
import os


class LogNameFilter(logging.Filter):
    """
    Logging filter that adds the name of the tracepoint log being analysed to log records
    """
    def __init__(self, log_path=None):
        super().__init__()
        self.log_path = log_path

    def filter(self, record):
        name = os.path.basename(self.log_path) if self.log_path else ""
        record.log_name = f"\033[38;5;208m[{name}]\033[0m" if name else ""
        return True


def setup_logging(log_path=None, log_level=logging.INFO):
    """
    Set up logging with the analysed log's file name as prefix

    Args:
        log_path: Path of the tracepoint log being analysed
        log_level: Logging level to use
    """
    root_logger = logging.getLogger()

    # Clear existing handlers to avoid duplicate logs
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(levelname)s - %(log_name)s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    name_filter = LogNameFilter(log_path)
    for handler in logging.getLogger().handlers:
        handler.addFilter(name_filter)
