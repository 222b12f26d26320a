"""Auto-refollow lifecycle for symbols that exited."""

from .models import FollowState, RefollowOutcome
from .refollow_controller import MANUAL_CLOSE_REASON, AutoRefollowController

__all__ = ["AutoRefollowController", "FollowState", "MANUAL_CLOSE_REASON", "RefollowOutcome"]
