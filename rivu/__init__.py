"""
Rivu Core.

Rivu Score engine and behavioral nudge system for the Rivu personal-finance
app.
"""

__version__ = "0.1.0"
