"""Case routing — assignment rules and the least-loaded fallback."""

from vozsegura.routing.selection import SupervisorLoad, pick_least_loaded, pick_rule

__all__ = ["SupervisorLoad", "pick_least_loaded", "pick_rule"]
