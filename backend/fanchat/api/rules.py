"""Chat rules endpoints."""

from fastapi import APIRouter, Depends, Response, status

from fanchat.api.deps import get_current_user, get_services
from fanchat.core.errors import PermissionDenied
from fanchat.models import ChatRule, User
from fanchat.schemas import ChatRuleCreate, ChatRuleRead, RulesBookRead
from fanchat.services import FanChatServices

router = APIRouter(tags=["rules"])


def _rules_book(services: FanChatServices, group_id: int, user: User) -> RulesBookRead:
    rules = services.rules.rules_for(group_id)
    acceptance = services.rules.acceptance_for(group_id, user.id)
    version = services.rules.version(group_id)
    accepted = acceptance is not None and acceptance.rules_version == version
    return RulesBookRead(
        group_id=group_id,
        version=version,
        rules=[ChatRuleRead.model_validate(rule) for rule in rules],
        accepted=accepted,
        accepted_at=acceptance.accepted_at if accepted else None,
    )


@router.get("/groups/{group_id}/rules", response_model=RulesBookRead)
def read_rules(
    group_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> RulesBookRead:
    if not services.permissions.is_group_member(current_user.id, group_id):
        raise PermissionDenied("You are not a member of this fan group")
    return _rules_book(services, group_id, current_user)


@router.post(
    "/groups/{group_id}/rules",
    response_model=ChatRuleRead,
    status_code=status.HTTP_201_CREATED,
)
def add_rule(
    group_id: int,
    payload: ChatRuleCreate,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> ChatRule:
    return services.rules.add_rule(
        group_id,
        current_user.id,
        payload.title,
        payload.description,
        icon=payload.icon,
        severity=payload.severity,
    )


@router.delete("/groups/{group_id}/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_rule(
    group_id: int,
    rule_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> Response:
    services.rules.remove_rule(group_id, current_user.id, rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/groups/{group_id}/rules/accept", response_model=RulesBookRead)
def accept_rules(
    group_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> RulesBookRead:
    services.rules.accept(group_id, current_user.id)
    return _rules_book(services, group_id, current_user)
