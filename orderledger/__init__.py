"""
orderledger - gift-card ledger and nursing-home order lifecycle service
"""

__version__ = "1.0.0"
