"""
Membership Kernel

Foundation shared by the membership billing engines:
- Decimal money paired with an ISO 4217 currency
- "YYYY-MM" billing period keys
- Injectable clock
- Typed, coded exceptions
- Structured JSON logging
"""

__version__ = "0.1.0"
