# reimburse/services/report_service.py
"""
Aggregations behind the analytics and monthly report pages.

Everything here is a pure function of (requests, users, filters): no
database access and no clock reads. "Today" comes in through
ReportFilters.today. Requests and users may be ORM rows, pydantic models or
plain dicts.
"""

from typing import Any, Dict, List, Optional, Sequence

from reimburse.core.constants import EXPENSE_CATEGORIES, MONTH_LABELS, WEEK_LABELS
from reimburse.models.reimbursement_request import RequestStatus
from reimburse.models.user import UserRole
from reimburse.schemas.report import (
    MonthlySeries,
    ReportFilters,
    ReportSummary,
    UserTotals,
    WeeklySeries,
)
from reimburse.utils.calculations import (
    ZERO,
    amount_text,
    parse_amount,
    parse_date,
    week_of_month,
)

STATUSES = [status.value for status in RequestStatus]


def _get(obj: Any, name: str, default=None):
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _status(obj) -> str:
    status = _get(obj, "status")
    if isinstance(status, RequestStatus):
        return status.value
    return str(status) if status is not None else ""


def _role(user) -> Optional[UserRole]:
    role = _get(user, "role")
    if role is None:
        return None
    try:
        return UserRole(role)
    except ValueError:
        return None


def _holds_budget(user) -> bool:
    role = _role(user)
    # unknown roles are counted like employees
    return role.holds_budget if role else True


def _display_date(value) -> str:
    # d/m/yyyy, the way dates are shown in the tables
    d = parse_date(value)
    if d is None:
        return ""
    return f"{d.day}/{d.month}/{d.year}"


# --------------------------------------------------
# FILTERING
# --------------------------------------------------
def _matches_filters(request, filters: ReportFilters) -> bool:
    expense_date = parse_date(_get(request, "expense_date"))

    needs_date = any(
        value is not None
        for value in (
            filters.start_date,
            filters.end_date,
            filters.year,
            filters.effective_month,
            filters.day,
        )
    )
    if needs_date and expense_date is None:
        return False

    if filters.start_date and expense_date < filters.start_date:
        return False
    if filters.end_date and expense_date > filters.end_date:
        return False
    if filters.year and expense_date.year != filters.year:
        return False
    if filters.effective_month and expense_date.month != filters.effective_month:
        return False
    if filters.day and expense_date.day != filters.day:
        return False

    if filters.category and _get(request, "category") != filters.category:
        return False
    if filters.status and _status(request) != filters.status.value:
        return False
    return True


def _matches_search(request, user_names: Dict[Any, str], search: str) -> bool:
    if not search:
        return True
    haystack = (
        user_names.get(_get(request, "user_id"), "").lower(),
        (_get(request, "description") or "").lower(),
        amount_text(_get(request, "amount")),
        (_get(request, "category") or "").lower(),
        _display_date(_get(request, "expense_date")),
        _display_date(_get(request, "created_at")),
        _status(request).lower(),
    )
    return any(search in field for field in haystack)


def filter_requests(
    requests: Sequence[Any],
    users: Sequence[Any],
    filters: ReportFilters,
) -> List[Any]:
    """All filters AND'd, then a free-text OR across the displayed fields."""
    user_names = {_get(u, "id"): _get(u, "name") or "" for u in users}
    search = filters.search.strip().lower()
    return [
        r
        for r in requests
        if _matches_filters(r, filters) and _matches_search(r, user_names, search)
    ]


# --------------------------------------------------
# AGGREGATES
# --------------------------------------------------
def _user_totals(user, requests: Sequence[Any]) -> UserTotals:
    totals = UserTotals(user_id=_get(user, "id"), name=_get(user, "name") or "")
    for r in requests:
        amount = parse_amount(_get(r, "amount"))
        status = _status(r)
        totals.request_count += 1
        totals.total_amount += amount
        if status == RequestStatus.approved.value:
            totals.approved_count += 1
            totals.approved_amount += amount
        elif status == RequestStatus.pending.value:
            totals.pending_amount += amount
        elif status == RequestStatus.rejected.value:
            totals.rejected_amount += amount
    return totals


def monthly_series(requests: Sequence[Any]) -> MonthlySeries:
    expenses = [ZERO] * 12
    by_status = {status: [ZERO] * 12 for status in STATUSES}

    for r in requests:
        expense_date = parse_date(_get(r, "expense_date"))
        if expense_date is None:
            continue
        index = expense_date.month - 1
        amount = parse_amount(_get(r, "amount"))
        expenses[index] += amount
        status = _status(r)
        if status in by_status:
            by_status[status][index] += amount

    return MonthlySeries(
        labels=list(MONTH_LABELS),
        expenses=expenses,
        reimbursements=by_status[RequestStatus.approved.value],
        pending=by_status[RequestStatus.pending.value],
        rejected=by_status[RequestStatus.rejected.value],
    )


def weekly_series(requests: Sequence[Any]) -> WeeklySeries:
    by_status = {status: [ZERO] * 4 for status in STATUSES}

    for r in requests:
        status = _status(r)
        expense_date = parse_date(_get(r, "expense_date"))
        if status not in by_status or expense_date is None:
            continue
        by_status[status][week_of_month(expense_date.day)] += parse_amount(_get(r, "amount"))

    return WeeklySeries(labels=list(WEEK_LABELS), by_status=by_status)


def top_users(
    requests: Sequence[Any],
    users: Sequence[Any],
    limit: Optional[int] = None,
) -> List[UserTotals]:
    """Users ranked by approved request count, then approved amount, then name."""
    ranked = sorted(
        user_breakdown(requests, users),
        key=lambda t: (-t.approved_count, -t.approved_amount, t.name),
    )
    return ranked[:limit] if limit is not None else ranked


def user_breakdown(requests: Sequence[Any], users: Sequence[Any]) -> List[UserTotals]:
    by_user: Dict[Any, List[Any]] = {}
    for r in requests:
        by_user.setdefault(_get(r, "user_id"), []).append(r)
    return [
        _user_totals(user, by_user.get(_get(user, "id"), []))
        for user in users
        if _holds_budget(user)
    ]


def build_report(
    requests: Sequence[Any],
    users: Sequence[Any],
    filters: ReportFilters,
    top_n: Optional[int] = None,
) -> ReportSummary:
    selected = filter_requests(requests, users, filters)

    count_by_status = {status: 0 for status in STATUSES}
    amount_by_status = {status: ZERO for status in STATUSES}
    approved_by_category = {category: ZERO for category in EXPENSE_CATEGORIES}
    amount_by_category = {category: ZERO for category in EXPENSE_CATEGORIES}
    total_amount = ZERO

    for r in selected:
        amount = parse_amount(_get(r, "amount"))
        status = _status(r)
        category = _get(r, "category")
        total_amount += amount

        if status in count_by_status:
            count_by_status[status] += 1
            amount_by_status[status] += amount
        if category in amount_by_category:
            amount_by_category[category] += amount
            if status == RequestStatus.approved.value:
                approved_by_category[category] += amount

    budget_users = [u for u in users if _holds_budget(u)]

    return ReportSummary(
        total_employees=len(budget_users),
        total_requests=len(selected),
        total_amount=total_amount,
        total_budget_allocated=sum(
            (parse_amount(_get(u, "reimbursement_budget")) for u in budget_users),
            ZERO,
        ),
        count_by_status=count_by_status,
        amount_by_status=amount_by_status,
        approved_amount_by_category=approved_by_category,
        amount_by_category=amount_by_category,
        monthly=monthly_series(selected),
        weekly=weekly_series(selected),
        top_users=top_users(selected, users, limit=top_n),
        user_breakdown=sorted(user_breakdown(selected, users), key=lambda t: t.name),
    )
