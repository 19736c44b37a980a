"""
budget_sync: session and offline-sync server for the budget client.
"""

__version__ = "0.1.0"
