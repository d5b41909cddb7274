"""API routers for PermitFlow."""

from . import applications
from . import groups
from . import health
from . import issues

__all__ = [
    "applications",
    "groups",
    "health",
    "issues",
]
