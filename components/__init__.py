"""
Components
==========
Statement-level building blocks over P&L line snapshots.
"""
