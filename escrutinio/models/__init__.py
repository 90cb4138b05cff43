from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .scrutiny import (  # noqa: F401
    AgencyPrize,
    CarryOver,
    ScrutinyRun,
    TierResult,
)

__all__ = [
    "Base",
    "AgencyPrize",
    "CarryOver",
    "ScrutinyRun",
    "TierResult",
]
