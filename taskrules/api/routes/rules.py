"""Rule management API routes."""

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query

from taskrules.api.deps import PaginationDep, RuleStoreDep
from taskrules.engine.validator import get_rule_validator
from taskrules.models.rule import AutomationRule, TriggerEvent
from taskrules.schemas.common import APIResponse, PaginatedResponse
from taskrules.schemas.rule import (
    RuleCreate,
    RuleCreateResponse,
    RuleResponse,
    RuleStatusUpdate,
    RuleUpdate,
)

router = APIRouter(prefix="/rules", tags=["rules"])


def _generate_rule_id() -> str:
    return f"rule_{datetime.now(timezone.utc).strftime('%Y%m%d')}_{uuid.uuid4().hex[:8]}"


@router.post("", response_model=APIResponse[RuleCreateResponse])
async def create_rule(
    data: RuleCreate,
    store: RuleStoreDep,
) -> APIResponse[RuleCreateResponse]:
    """Create a new rule after validating it."""
    validation = get_rule_validator().ensure_valid(data.model_dump(mode="json"))

    rule = AutomationRule(id=_generate_rule_id(), **data.model_dump())
    created = await store.create(rule)

    return APIResponse(
        data=RuleCreateResponse(
            rule_id=created.id,
            created_at=created.created_at,
            warnings=validation.warnings,
        )
    )


@router.get("", response_model=PaginatedResponse[RuleResponse])
async def list_rules(
    store: RuleStoreDep,
    pagination: PaginationDep,
    user_id: str | None = Query(default=None, description="Filter by owning user"),
    trigger: TriggerEvent | None = Query(default=None, description="Filter by trigger"),
    is_active: bool | None = Query(default=None, description="Filter by active status"),
    name_contains: str | None = Query(default=None, description="Filter by name substring"),
) -> PaginatedResponse[RuleResponse]:
    """List rules with optional filtering, newest first."""
    if user_id:
        rules = await store.list_by_user(user_id)
    else:
        rules = await store.list_all()

    if trigger is not None:
        rules = [r for r in rules if r.trigger == trigger]
    if is_active is not None:
        rules = [r for r in rules if r.is_active == is_active]
    if name_contains:
        needle = name_contains.lower()
        rules = [r for r in rules if needle in r.name.lower()]

    rules = sorted(rules, key=lambda r: r.created_at, reverse=True)

    return PaginatedResponse(
        data=[RuleResponse.model_validate(r.model_dump()) for r in pagination.slice(rules)],
        total=len(rules),
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/{rule_id}", response_model=APIResponse[RuleResponse])
async def get_rule(
    rule_id: str,
    store: RuleStoreDep,
) -> APIResponse[RuleResponse]:
    """Get a single rule by ID."""
    rule = await store.get(rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    return APIResponse(data=RuleResponse.model_validate(rule.model_dump()))


@router.put("/{rule_id}", response_model=APIResponse[RuleResponse])
async def replace_rule(
    rule_id: str,
    data: RuleCreate,
    store: RuleStoreDep,
) -> APIResponse[RuleResponse]:
    """Replace an existing rule's definition."""
    existing = await store.get(rule_id)
    if not existing:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    get_rule_validator().ensure_valid(data.model_dump(mode="json"))

    replacement = AutomationRule(
        id=rule_id,
        created_at=existing.created_at,
        **data.model_dump(),
    )
    result = await store.update(rule_id, replacement)
    if not result:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    return APIResponse(data=RuleResponse.model_validate(result.model_dump()))


@router.patch("/{rule_id}", response_model=APIResponse[RuleResponse])
async def update_rule(
    rule_id: str,
    data: RuleUpdate,
    store: RuleStoreDep,
) -> APIResponse[RuleResponse]:
    """Partially update an existing rule."""
    existing = await store.get(rule_id)
    if not existing:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    merged = existing.model_dump(mode="json")
    changes = data.model_dump(mode="json", exclude_unset=True)
    merged.update({key: value for key, value in changes.items() if value is not None})
    get_rule_validator().ensure_valid(merged)

    result = await store.update(rule_id, AutomationRule.model_validate(merged))
    if not result:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    return APIResponse(data=RuleResponse.model_validate(result.model_dump()))


@router.delete("/{rule_id}", response_model=APIResponse)
async def delete_rule(
    rule_id: str,
    store: RuleStoreDep,
) -> APIResponse:
    """Delete a rule."""
    deleted = await store.delete(rule_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    return APIResponse(message=f"Rule {rule_id} deleted")


@router.patch("/{rule_id}/status", response_model=APIResponse[RuleResponse])
async def update_rule_status(
    rule_id: str,
    data: RuleStatusUpdate,
    store: RuleStoreDep,
) -> APIResponse[RuleResponse]:
    """Enable or disable a rule."""
    rule = await store.set_active(rule_id, data.is_active)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    return APIResponse(data=RuleResponse.model_validate(rule.model_dump()))
