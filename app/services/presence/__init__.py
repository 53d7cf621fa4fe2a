from app.services.presence.tracker import (
    PresenceTracker,
    get_presence_tracker,
    set_presence_tracker,
)

__all__ = ["PresenceTracker", "get_presence_tracker", "set_presence_tracker"]
