"""
Infrastructure package for Rivu Core.

- database.py: engine, session factory, schema creation
- monitoring.py: Prometheus metrics for the score and nudge engines
"""
