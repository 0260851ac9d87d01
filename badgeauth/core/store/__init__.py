from badgeauth.core.store.models import Employee, EmployeeRecord, PinFailure
from badgeauth.core.store.sqlite_store import EmployeeStore

__all__ = ["Employee", "EmployeeRecord", "EmployeeStore", "PinFailure"]
