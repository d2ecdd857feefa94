"""
Payables Kernel

Shared foundation of the accounts-payable decision engine:
- Frozen domain records and result types (Decimal only)
- Policy value objects consumed by the engines
- Injectable clock and external signal providers
- Typed exception hierarchy and structured JSON logging
- SQLAlchemy declarative base and session helpers
"""

__version__ = "0.1.0"
