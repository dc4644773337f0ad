"""Presentation layer for the colony simulation.

Public API
----------
- :class:`ConsoleDashboard` -- rich (or plain-text) console output
"""

from colony_sim.presentation.console import ConsoleDashboard

__all__ = ["ConsoleDashboard"]
