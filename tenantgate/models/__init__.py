from .tenancy import ApiToken, Contact, Employee, Organisation

__all__ = ["ApiToken", "Contact", "Employee", "Organisation"]
