"""
Report artifacts: CSV export and printable HTML documents.
"""

from qms.reporting.generator import ReportGenerator

__all__ = ["ReportGenerator"]
