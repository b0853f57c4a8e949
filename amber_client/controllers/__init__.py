from .client_supervisor import ClientSupervisor, SessionState
from .trigger_coordinator import TriggerCoordinator

__all__ = [
    "ClientSupervisor",
    "SessionState",
    "TriggerCoordinator",
]
