from app.core.models.tenant import Tenant
from app.core.models.academic_session import AcademicSession
from app.core.models.student import Student
from app.core.models.fee_schedule import FeeSchedule
from app.core.models.student_due import StudentDue
from app.core.models.occasional_charge import OccasionalCharge
from app.core.models.occasional_fee_type import OccasionalFeeType
from app.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "Tenant",
    "AcademicSession",
    "Student",
    "FeeSchedule",
    "StudentDue",
    "OccasionalCharge",
    "OccasionalFeeType",
    "FeeAuditLog",
]
