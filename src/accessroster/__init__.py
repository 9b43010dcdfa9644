"""
Allow-list authorization and activity roster reconciliation.
"""

__version__ = "0.1.0"
