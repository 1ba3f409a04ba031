"""
Tenancy models: organisations and everything scoped to them.
"""

from .organisations import Organisation
from .employees import Employee
from .contacts import Contact
from .tokens import ApiToken

__all__ = [
    "Organisation",
    "Employee",
    "Contact",
    "ApiToken",
]
