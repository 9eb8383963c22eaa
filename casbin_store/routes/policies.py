from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from .. import errors
from ..models import CasbinRule
from ..repository import CasbinRepository

router = APIRouter()

_STATUS = {
    errors.ConstraintViolation: 409,
    errors.ConnectionError: 503,
    errors.QueryError: 400,
    errors.SchemaError: 500,
}


def _repo(request: Request) -> CasbinRepository:
    return request.app.state.repo


def _http_error(e: errors.StoreError) -> HTTPException:
    for cls, status in _STATUS.items():
        if isinstance(e, cls):
            return HTTPException(status_code=status, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


class FilterBody(BaseModel):
    filter: Optional[Dict[str, Optional[List[Optional[str]]]]] = None


class BatchBody(BaseModel):
    rules: List[CasbinRule]


class DeleteBody(BaseModel):
    ptype: str
    field_values: List[Optional[str]] = Field(default_factory=list)
    field_index: int = Field(default=0, ge=0)


@router.get("/api/policies")
async def api_policies_list(request: Request):
    try:
        rules = await _repo(request).get_all_policies()
    except errors.StoreError as e:
        raise _http_error(e) from e
    return {"total": len(rules), "items": [r.model_dump() for r in rules]}


@router.post("/api/policies/filter")
async def api_policies_filter(body: FilterBody, request: Request):
    try:
        rules = await _repo(request).get_filtered_policies(body.filter)
    except errors.StoreError as e:
        raise _http_error(e) from e
    return {"total": len(rules), "items": [r.model_dump() for r in rules]}


@router.post("/api/policies", status_code=201)
async def api_policies_create(body: CasbinRule, request: Request):
    try:
        await _repo(request).insert_policy(body.ptype, body.rule)
    except errors.StoreError as e:
        raise _http_error(e) from e
    return {"message": "ok"}


@router.post("/api/policies/batch", status_code=201)
async def api_policies_batch(body: BatchBody, request: Request):
    try:
        await _repo(request).insert_policies(body.rules)
    except errors.StoreError as e:
        raise _http_error(e) from e
    return {"message": "ok", "inserted": len(body.rules)}


@router.post("/api/policies/delete")
async def api_policies_delete(body: DeleteBody, request: Request):
    try:
        deleted = await _repo(request).delete_policies(body.ptype, body.field_values, body.field_index)
    except errors.StoreError as e:
        raise _http_error(e) from e
    return {"message": "ok", "deleted": deleted}


@router.post("/api/policies/clear")
async def api_policies_clear(request: Request):
    try:
        deleted = await _repo(request).clear_policies()
    except errors.StoreError as e:
        raise _http_error(e) from e
    return {"message": "ok", "deleted": deleted}
