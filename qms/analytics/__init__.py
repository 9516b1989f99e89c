"""Dashboard KPIs and vendor aggregates."""
