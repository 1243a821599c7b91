# Client-side coordinator
from .coordinator import GameCoordinator

__all__ = ["GameCoordinator"]
