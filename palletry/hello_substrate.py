"""A pallet whose single call greets its caller in the log."""

from __future__ import annotations

import logging

from palletry.runtime import Origin, System, ensure_signed

logger = logging.getLogger(__name__)


class HelloSubstrate:
    def __init__(self, system: System) -> None:
        self.system = system

    def say_hello(self, origin: Origin) -> None:
        """Log a greeting and the caller; only signed origins may call."""
        caller = ensure_signed(origin)
        logger.info("Hello World")
        logger.info("Request sent by: %r", caller)