from enum import Enum


class Directorate(str, Enum):
    DIJUD = "DIJUD"
    DPE = "DPE"
    DTI = "DTI"
    DSTI = "DSTI"
    SGJT = "SGJT"


# sentinel in Form.allowed_directorates meaning "every directorate"
ALL_DIRECTORATES = "ALL"

DIRECTORATES = [{"value": d.value, "label": d.value} for d in Directorate]
