"""Domain exceptions for the dataset and dashboard stores.

The aggregation engine itself never raises for bad data; these only cover
lookups and persistence.
"""

from __future__ import annotations


class DatasetNotFound(KeyError):
    """Raised when a session has no dataset under the requested name."""


class DashboardError(RuntimeError):
    """Base class for dashboard persistence failures."""


class DashboardNotFound(DashboardError):
    pass


class DashboardExists(DashboardError):
    pass


class InvalidDashboard(DashboardError):
    """Raised when a dashboard payload is missing its id, name or charts."""
