"""
Worker module.
Contains the polling consumer and the processor registry.
"""

from sqlqueue.worker.handlers import get_handler, list_handlers, register_handler
from sqlqueue.worker.main import Worker, run

__all__ = ["Worker", "run", "register_handler", "get_handler", "list_handlers"]
