from .logger import get_logger, set_console_level, shutdown_logging

__all__ = ["get_logger", "set_console_level", "shutdown_logging"]
