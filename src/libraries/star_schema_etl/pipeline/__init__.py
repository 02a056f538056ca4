"""
ETL orchestration.
"""

from .etl_runner import ETLRunner, RunReport, RunStatus

__all__ = [
    "ETLRunner",
    "RunReport",
    "RunStatus"
]
