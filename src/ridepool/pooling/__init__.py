from .engine import PoolCriteria, PoolingEngine, select_candidates

__all__ = ["PoolCriteria", "PoolingEngine", "select_candidates"]
