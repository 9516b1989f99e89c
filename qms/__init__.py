"""
QMS inspection core.

Records quality inspections of manufactured batches, derives a
predicted classification from criteria scores, tracks the manager
approval decision, and renders CSV / HTML report artifacts.
"""

__version__ = "0.1.0"
