from .logger import JsonlTraceLogger, configure_logging

__all__ = ["JsonlTraceLogger", "configure_logging"]
