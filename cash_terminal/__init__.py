"""
Cash Terminal Core

Account ledger and cash-dispensing engine for a self-service cash terminal:
balance invariants, greedy note breakdown, and a daily withdrawal cap over an
append-only transaction log. All money math uses Decimal.
"""

__version__ = "1.0.0"
