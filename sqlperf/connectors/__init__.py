"""
Query engine connectors.
"""

from sqlperf.connectors.base import Dataset, PlanNode, QueryEngine, QueryExecution

__all__ = ["Dataset", "PlanNode", "QueryEngine", "QueryExecution"]
