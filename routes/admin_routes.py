"""
Admin API for one shop, used by the embedded app backend.

All routes live under /admin/shops/{shop} and require the ``X-Admin-Token``
header (see dependencies.require_admin).

Rules
  GET    /rules                 list (optional ?match_type=country|ip)
  POST   /rules                 create
  POST   /rules/bulk-delete     delete several by id
  GET    /rules/{rule_id}       fetch one
  PATCH  /rules/{rule_id}       partial update
  DELETE /rules/{rule_id}       delete one
Settings, plan, usage
  GET    /settings              read (created with defaults on first access)
  PUT    /settings              partial update
  PUT    /plan                  record the shop's current plan
  GET    /usage                 this month's counters and gate result
Billing / lifecycle
  POST   /billing/overage       charge unbilled overage now
  DELETE /                      purge every document of the shop (uninstall)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response

from dependencies import (
    get_billing_service,
    get_rule_service,
    get_settings_service,
    get_shop_service,
    require_admin,
)
from errors import ValidationError
from schemas.dto.requests.rule import (
    BulkDeleteRulesRequest,
    CreateRuleRequest,
    UpdateRuleRequest,
)
from schemas.dto.requests.settings import SetPlanRequest, UpdateSettingsRequest
from schemas.dto.responses.common import ErrorResponse
from schemas.dto.responses.rule import BulkDeleteResponse, RuleListResponse, RuleResponse
from schemas.dto.responses.settings import (
    OverageResponse,
    PurgeResponse,
    SettingsResponse,
    UsageResponse,
)
from schemas.models.enums import MatchType
from services.billing_service import BillingService
from services.rule_service import RuleService
from services.settings_service import SettingsService
from services.shop_service import ShopService
from shared.validators import validate_shop_domain


def valid_shop(shop: str = Path(...)) -> str:
    shop = shop.strip().lower()
    if not validate_shop_domain(shop):
        raise ValidationError("Invalid shop domain", field="shop")
    return shop


router = APIRouter(
    prefix="/admin/shops/{shop}",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)


# ── Rules ────────────────────────────────────────────────────────────────────


@router.get("/rules", response_model=RuleListResponse)
async def list_rules(
    shop: str = Depends(valid_shop),
    match_type: Optional[MatchType] = Query(default=None),
    service: RuleService = Depends(get_rule_service),
) -> RuleListResponse:
    rules = await service.list_rules(shop, match_type)
    return RuleListResponse(
        items=[RuleResponse.from_doc(r) for r in rules], total=len(rules)
    )


@router.post("/rules", response_model=RuleResponse, status_code=201)
async def create_rule(
    body: CreateRuleRequest,
    shop: str = Depends(valid_shop),
    service: RuleService = Depends(get_rule_service),
) -> RuleResponse:
    return RuleResponse.from_doc(await service.create_rule(shop, body))


@router.post("/rules/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_rules(
    body: BulkDeleteRulesRequest,
    shop: str = Depends(valid_shop),
    service: RuleService = Depends(get_rule_service),
) -> BulkDeleteResponse:
    return BulkDeleteResponse(deleted=await service.bulk_delete(shop, body.ids))


@router.get("/rules/{rule_id}", response_model=RuleResponse)
async def get_rule(
    rule_id: str,
    shop: str = Depends(valid_shop),
    service: RuleService = Depends(get_rule_service),
) -> RuleResponse:
    return RuleResponse.from_doc(await service.get_rule(shop, rule_id))


@router.patch("/rules/{rule_id}", response_model=RuleResponse)
async def update_rule(
    rule_id: str,
    body: UpdateRuleRequest,
    shop: str = Depends(valid_shop),
    service: RuleService = Depends(get_rule_service),
) -> RuleResponse:
    return RuleResponse.from_doc(await service.update_rule(shop, rule_id, body))


@router.delete("/rules/{rule_id}", status_code=204)
async def delete_rule(
    rule_id: str,
    shop: str = Depends(valid_shop),
    service: RuleService = Depends(get_rule_service),
) -> Response:
    await service.delete_rule(shop, rule_id)
    return Response(status_code=204)


# ── Settings, plan, usage ────────────────────────────────────────────────────


@router.get("/settings", response_model=SettingsResponse)
async def get_settings(
    shop: str = Depends(valid_shop),
    service: SettingsService = Depends(get_settings_service),
) -> SettingsResponse:
    return SettingsResponse.from_doc(await service.get_settings(shop))


@router.put("/settings", response_model=SettingsResponse)
async def update_settings(
    body: UpdateSettingsRequest,
    shop: str = Depends(valid_shop),
    service: SettingsService = Depends(get_settings_service),
) -> SettingsResponse:
    return SettingsResponse.from_doc(await service.update_settings(shop, body))


@router.put("/plan", response_model=SettingsResponse)
async def set_plan(
    body: SetPlanRequest,
    shop: str = Depends(valid_shop),
    service: SettingsService = Depends(get_settings_service),
) -> SettingsResponse:
    return SettingsResponse.from_doc(await service.set_plan(shop, body.plan))


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    shop: str = Depends(valid_shop),
    service: SettingsService = Depends(get_settings_service),
) -> UsageResponse:
    return await service.usage_summary(shop)


# ── Billing / lifecycle ──────────────────────────────────────────────────────


@router.post("/billing/overage", response_model=OverageResponse)
async def charge_overage(
    shop: str = Depends(valid_shop),
    service: BillingService = Depends(get_billing_service),
) -> OverageResponse:
    result = await service.charge_overage(shop)
    return OverageResponse(
        charged=result.charged,
        overage_visitors=result.overage_visitors,
        amount=result.amount,
    )


@router.delete("", response_model=PurgeResponse)
async def purge_shop(
    shop: str = Depends(valid_shop),
    service: ShopService = Depends(get_shop_service),
) -> PurgeResponse:
    return PurgeResponse(shop=shop, deleted=await service.purge(shop))
