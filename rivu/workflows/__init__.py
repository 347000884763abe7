"""
Batch workflows for Rivu Core.
"""

from rivu.workflows.inactivity_sweep import SweepReport, run_inactivity_sweep

__all__ = ["SweepReport", "run_inactivity_sweep"]
