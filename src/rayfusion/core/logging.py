"""Structured logging setup for the rayfusion pipeline."""

from __future__ import annotations

import logging
import sys


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Configure structured logging with consistent format.

    ``verbose`` forces DEBUG, which adds grid matrix dumps and per-view loading
    messages.
    """
    if verbose:
        level = "DEBUG"
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
