"""
CachePort Faults - Structured fault handling.

Faults are typed error values with a stable code, a domain and a severity.
They are raised like exceptions, and validation helpers may also return
them so that callers decide when to raise.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain taxonomy
- Severity: Severity levels
"""

from .core import (
    DOMAIN_DEFAULTS,
    Fault,
    FaultDomain,
    Severity,
)

__all__ = [
    "DOMAIN_DEFAULTS",
    "Fault",
    "FaultDomain",
    "Severity",
]
