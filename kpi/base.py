"""
kpi/base.py

Abstract base class for funnel KPI formula implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class BaseKPIFormula(ABC):
    """
    Contract for KPI formula implementations.

    Subclasses receive a plain dictionary of summed funnel totals and must
    return a plain dictionary of finite computed metric values.

    No I/O, no logging, and no side effects are permitted inside
    :meth:`calculate`.
    """

    @abstractmethod
    def calculate(self, inputs: dict[str, Any]) -> dict[str, float]:
        """
        Compute KPI metrics from *inputs* and return a result dictionary.

        Parameters
        ----------
        inputs:
            Totals keyed by numeric field name (``spend``, ``clicks`` ...).

        Returns
        -------
        dict[str, float]
            Computed metrics keyed by metric name.
        """
