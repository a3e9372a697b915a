"""
State exposed to the presentation layer.

Plain data only: the view re-renders on change through its own mechanism.
"""

from pydantic import Field

from .common import BaseContract
from .match import DashboardSnapshot


class SurfacedError(BaseContract):
    """Dismissible error shown with a manual retry affordance."""

    kind: str = Field(..., description="Error taxonomy name, e.g. 'RateLimited'")
    message: str
    retryable: bool = True


class DashboardState(BaseContract):
    snapshot: DashboardSnapshot | None = None
    has_more: bool = True
    is_loading: bool = False
    is_loading_more: bool = False
    error: SurfacedError | None = None
