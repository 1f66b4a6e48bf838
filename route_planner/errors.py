from __future__ import annotations


class RoutePlannerError(RuntimeError):
    """Base class for errors raised by the route planner."""


class ConfigurationError(RoutePlannerError):
    """A required provider credential or setting is missing. Not retried."""


class ConfigValidationError(RoutePlannerError, ValueError):
    """A settings value is outside its allowed range."""


class GeocodingError(RoutePlannerError):
    pass


class DirectionsError(RoutePlannerError):
    pass


class SolverError(RoutePlannerError):
    """The external route optimizer failed or returned an unusable response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
