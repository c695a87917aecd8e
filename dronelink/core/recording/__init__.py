from .command import CommandTraceLogger

__all__ = ["CommandTraceLogger"]
