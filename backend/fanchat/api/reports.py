"""Message report endpoints."""

from fastapi import APIRouter, Depends, status

from fanchat.api.deps import get_current_user, get_services
from fanchat.models import FanChatReport, User
from fanchat.schemas import ReportCreate, ReportRead, ReportResolve
from fanchat.services import FanChatServices

router = APIRouter(tags=["reports"])


@router.post("/reports", response_model=ReportRead, status_code=status.HTTP_201_CREATED)
def submit_report(
    payload: ReportCreate,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> FanChatReport:
    report_id = services.reports.submit(
        current_user.id, payload.message_id, payload.reason, payload.description
    )
    return services.reports.get(report_id)


@router.get("/groups/{group_id}/reports", response_model=list[ReportRead])
def list_pending_reports(
    group_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> list[FanChatReport]:
    """Pending reports on chats the current user moderates."""

    return services.reports.list_pending(group_id, current_user.id)


@router.post("/reports/{report_id}/resolve", response_model=ReportRead)
def resolve_report(
    report_id: int,
    payload: ReportResolve,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> FanChatReport:
    return services.reports.resolve(
        report_id, current_user.id, payload.outcome, status=payload.status
    )
