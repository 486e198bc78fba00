from .cleanup import TempSweeper

__all__ = ["TempSweeper"]
