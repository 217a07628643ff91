"""Shared logging helpers for rulekeeper."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with controller-friendly defaults.

    Parameters mirror ``logging.basicConfig`` with a simplified contract: INFO level
    and a terse format that keeps the logger name visible, so reconcile passes can be
    told apart from worker and adapter output. Pass ``force=True`` to reconfigure
    during tests or specialised entry points.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
