from __future__ import annotations

from enum import StrEnum

SERIAL_NUMBER_FIELD = "serialNumber"
AGE_FIELD = "age"
SEX_FIELD = "sex"
CENTER_FIELD = "centerId"

LOCAL_BACKUP_KEY = "nidipo_form_backup"


class UserRole(StrEnum):
    ADMIN = "admin"
    RESEARCHER = "researcher"
    DATA_ENTRY = "data-entry"
