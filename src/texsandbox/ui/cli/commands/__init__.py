"""CLI command implementations exposed via `texsandbox.ui.cli`."""

from __future__ import annotations

from .build import build
from .status import capabilities, status


__all__ = ["build", "capabilities", "status"]
