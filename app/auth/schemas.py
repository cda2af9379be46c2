from typing import Dict, Optional

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated caller for RBAC checks.
    school_id is the tenant every timetable operation is scoped to.
    """

    id: str
    school_id: str
    role: str
    permissions: Dict[str, Dict[str, bool]] = {}
    academic_year_id: Optional[str] = None
