from fastapi import APIRouter

from reimburse.core.constants import EXPENSE_CATEGORIES, RECEIPT_EXTENSIONS
from reimburse.models.reimbursement_request import RequestStatus
from reimburse.models.user import UserRole

router = APIRouter(prefix="/reference-data", tags=["Reference Data"])


@router.get("")
def get_reference_data():
    return {
        "categories": EXPENSE_CATEGORIES,
        "statuses": [status.value for status in RequestStatus],
        "roles": [role.value for role in UserRole],
        "receipt_extensions": RECEIPT_EXTENSIONS,
    }
