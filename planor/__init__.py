"""
Planor Savings Challenges - Source Package

The savings-challenge engine behind Planor's goals module: weekly
deposit schedules, progress projection and deposit reconciliation.

DESIGN PRINCIPLES:
1. Schedules are pure math - same inputs, same amounts
2. Totals are always re-derived from deposit history
3. The record store owns persistence; the engine owns no state
4. Every state change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Planor Team"
