from collegedesk.core.models.college import College
from collegedesk.core.models.pending_admission import PendingAdmission
from collegedesk.core.models.rejected_admission import RejectedAdmission
from collegedesk.core.models.fee_transaction import FeeTransaction

__all__ = [
    "College",
    "PendingAdmission",
    "RejectedAdmission",
    "FeeTransaction",
]
