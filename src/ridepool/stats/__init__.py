from .projector import StatsProjector

__all__ = ["StatsProjector"]
