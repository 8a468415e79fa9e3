"""Record persistence."""

from .store import HenInfo, save, load

__all__ = ["HenInfo", "save", "load"]
