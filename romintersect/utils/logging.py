import logging

from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class FileLoggingContext:
    """Context manager that mirrors every log record to a run log file.

    The handler is attached to the root logger, so records from all
    `romintersect` modules (and third-party libraries) within the context end
    up in the file.
    """

    def __init__(
        self,
        log_file_path: Path,
        suppress_stdout: bool = False,
        level: int = logging.NOTSET,
    ):
        """
        Args:
            log_file_path: Path of the log file; parent directories are created.
            suppress_stdout: If True, other root handlers are detached while the
                context is active.
            level: Minimum level written to the file.
        """
        self.log_file_path = Path(log_file_path)
        self.suppress_stdout = suppress_stdout
        self.level = level
        self.file_handler: logging.FileHandler | None = None
        self.detached_handlers: list[logging.Handler] = []

    def __enter__(self) -> "FileLoggingContext":
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        self.file_handler = logging.FileHandler(self.log_file_path)
        self.file_handler.setLevel(self.level)
        self.file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

        root_logger = logging.getLogger()
        if self.suppress_stdout:
            self.detached_handlers = root_logger.handlers[:]
            for handler in self.detached_handlers:
                root_logger.removeHandler(handler)
        root_logger.addHandler(self.file_handler)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        root_logger = logging.getLogger()

        if self.file_handler in root_logger.handlers:
            root_logger.removeHandler(self.file_handler)

        # Reattach handlers removed on entry.
        for handler in self.detached_handlers:
            if handler not in root_logger.handlers:
                root_logger.addHandler(handler)
        self.detached_handlers = []

        if self.file_handler:
            self.file_handler.close()
            self.file_handler = None
