# reimburse/core/constants.py

EXPENSE_CATEGORIES = [
    "Meals and Entertainment",
    "Transportation",
    "Accommodation",
    "Office Supplies",
    "Training and Development",
    "Software and Subscriptions",
    "Marketing",
    "Other",
]

RECEIPT_EXTENSIONS = [
    "jpg",
    "jpeg",
    "png",
    "pdf",
]

# blob path: {user_id}/reimbursement_requests/{request_id}/{filename}
RECEIPT_FOLDER = "reimbursement_requests"

DESCRIPTION_MIN_LENGTH = 3
MERCHANT_MIN_LENGTH = 2
MIN_AMOUNT = "0.01"

MONTH_LABELS = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]

WEEK_LABELS = [
    "Week 1",
    "Week 2",
    "Week 3",
    "Week 4",
]
