"""
Processor registry and built-in processors.

Processors must be idempotent: an item may be delivered more than once when
a claim times out or a worker dies before finalizing it.
"""

import logging
from collections.abc import Callable

from sqlqueue.constants import Outcome
from sqlqueue.types.item import Processor

logger = logging.getLogger(__name__)

# Processor registry
_handlers: dict[str, Processor] = {}


def register_handler(name: str) -> Callable[[Processor], Processor]:
    """
    Decorator to register a processor under a name.

    Args:
        name: The name workers select the processor by.

    Returns:
        Decorator function.

    Example:
        @register_handler("reindex")
        def handle_reindex(reference: str) -> Outcome:
            ...
    """
    def decorator(handler: Processor) -> Processor:
        _handlers[name] = handler
        logger.debug(f"Registered handler: {name}")
        return handler
    return decorator


def get_handler(name: str) -> Processor | None:
    """
    Get a registered processor.

    Args:
        name: The processor name.

    Returns:
        The processor or None if not found.
    """
    return _handlers.get(name)


def list_handlers() -> list[str]:
    """List all registered processor names."""
    return list(_handlers.keys())


# ============================================================================
# Built-in handlers
# ============================================================================


@register_handler("echo")
def handle_echo(reference: str) -> Outcome:
    """Log the reference and report success."""
    logger.info("Echo", extra={"reference": reference})
    return Outcome.SUCCESS


@register_handler("reject")
def handle_reject(reference: str) -> Outcome:
    """
    Report failure for every reference.

    Items consumed with this handler are released on each attempt until the
    retry limit prunes them.
    """
    logger.info("Rejecting item", extra={"reference": reference})
    return Outcome.FAILURE
