"""
Observability for the QMS core: structured logging with per-record
context.
"""
