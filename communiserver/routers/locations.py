# communiserver/routers/locations.py
# annotations stay eager: generated routes use closure variables as payload types
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_permission
from ..db import get_db
from ..domain.leadership import LocationLevel
from ..domain.pagination import DEFAULT_SIZE, MAX_SIZE, PageRequest
from ..domain.permissions import Permission as P
from ..schemas import (
    AssignUserIn,
    CellCreate,
    CellOut,
    DistrictCreate,
    DistrictOut,
    HouseCreate,
    HouseOut,
    HouseUpdate,
    IsiboCreate,
    IsiboMembersIn,
    IsiboOut,
    IsiboUpdate,
    NameUpdate,
    ProvinceCreate,
    ProvinceOut,
    SectorCreate,
    SectorOut,
    VillageCreate,
    VillageOut,
)
from ..services import locations_service as svc


def _crud_router(
    key: str,
    prefix: str,
    *,
    create_schema: type[BaseModel],
    update_schema: type[BaseModel],
    out_schema: type[BaseModel],
    create_perm: P,
    update_perm: P,
    delete_perm: P,
) -> APIRouter:
    t = svc.TIERS[key]
    router = APIRouter(prefix=prefix, tags=["locations"])

    @router.post("", response_model=out_schema, status_code=201)
    def create(payload: create_schema, db: Session = Depends(get_db), p=Depends(require_permission(create_perm))):  # type: ignore[valid-type]
        return svc.create_node(db, t, payload.model_dump(), principal=p)

    @router.get("")
    def list_(
        page: int = Query(default=1, ge=1),
        size: int = Query(default=DEFAULT_SIZE, ge=1, le=MAX_SIZE),
        q: Optional[str] = Query(default=None),
        province_id: Optional[uuid.UUID] = None,
        district_id: Optional[uuid.UUID] = None,
        sector_id: Optional[uuid.UUID] = None,
        cell_id: Optional[uuid.UUID] = None,
        village_id: Optional[uuid.UUID] = None,
        isibo_id: Optional[uuid.UUID] = None,
        db: Session = Depends(get_db),
        p=Depends(get_principal),
    ) -> dict[str, Any]:
        filters = {
            "province_id": province_id,
            "district_id": district_id,
            "sector_id": sector_id,
            "cell_id": cell_id,
            "village_id": village_id,
            "isibo_id": isibo_id,
        }
        return svc.list_nodes(
            db, t, PageRequest(page=page, size=size), q=q, filters=filters, serialize=out_schema.model_validate
        )

    @router.get("/{node_id}", response_model=out_schema)
    def get(
        node_id: uuid.UUID,
        include_deleted: bool = Query(default=False),
        db: Session = Depends(get_db),
        p: Principal = Depends(get_principal),
    ):
        if include_deleted and not p.is_admin:
            raise HTTPException(status_code=403, detail="include_deleted requires role ADMIN")
        return svc.must_get(db, t, node_id, include_deleted=include_deleted)

    @router.patch("/{node_id}", response_model=out_schema)
    def update(node_id: uuid.UUID, payload: update_schema, db: Session = Depends(get_db), p=Depends(require_permission(update_perm))):  # type: ignore[valid-type]
        return svc.update_node(db, t, node_id, payload.model_dump(exclude_unset=True), principal=p)

    @router.delete("/{node_id}")
    def delete(node_id: uuid.UUID, db: Session = Depends(get_db), p=Depends(require_permission(delete_perm))):
        svc.delete_node(db, t, node_id, principal=p)
        return {"ok": True}

    return router


def _leader_routes(router: APIRouter, level: LocationLevel, out_schema: type[BaseModel], assign: P, deassign: P) -> None:
    @router.post("/{node_id}/leader", response_model=out_schema)
    def assign_leader(node_id: uuid.UUID, payload: AssignUserIn, db: Session = Depends(get_db), p=Depends(require_permission(assign))):
        return svc.assign_leader(db, level, node_id, payload.user_id, principal=p)

    @router.delete("/{node_id}/leader", response_model=out_schema)
    def remove_leader(node_id: uuid.UUID, db: Session = Depends(get_db), p=Depends(require_permission(deassign))):
        return svc.remove_leader(db, level, node_id, principal=p)


provinces_router = _crud_router(
    "province",
    "/provinces",
    create_schema=ProvinceCreate,
    update_schema=NameUpdate,
    out_schema=ProvinceOut,
    create_perm=P.MANAGE_LOCATIONS,
    update_perm=P.MANAGE_LOCATIONS,
    delete_perm=P.MANAGE_LOCATIONS,
)

districts_router = _crud_router(
    "district",
    "/districts",
    create_schema=DistrictCreate,
    update_schema=NameUpdate,
    out_schema=DistrictOut,
    create_perm=P.MANAGE_LOCATIONS,
    update_perm=P.MANAGE_LOCATIONS,
    delete_perm=P.MANAGE_LOCATIONS,
)

sectors_router = _crud_router(
    "sector",
    "/sectors",
    create_schema=SectorCreate,
    update_schema=NameUpdate,
    out_schema=SectorOut,
    create_perm=P.MANAGE_LOCATIONS,
    update_perm=P.MANAGE_LOCATIONS,
    delete_perm=P.MANAGE_LOCATIONS,
)

cells_router = _crud_router(
    "cell",
    "/cells",
    create_schema=CellCreate,
    update_schema=NameUpdate,
    out_schema=CellOut,
    create_perm=P.CREATE_CELL,
    update_perm=P.UPDATE_CELL,
    delete_perm=P.DELETE_CELL,
)
_leader_routes(cells_router, LocationLevel.CELL, CellOut, P.ASSIGN_CELL_LEADERS, P.DEASSIGN_CELL_LEADERS)

villages_router = _crud_router(
    "village",
    "/villages",
    create_schema=VillageCreate,
    update_schema=NameUpdate,
    out_schema=VillageOut,
    create_perm=P.CREATE_VILLAGE,
    update_perm=P.UPDATE_VILLAGE,
    delete_perm=P.DELETE_VILLAGE,
)
_leader_routes(villages_router, LocationLevel.VILLAGE, VillageOut, P.ASSIGN_VILLAGE_LEADERS, P.DEASSIGN_VILLAGE_LEADERS)

isibos_router = _crud_router(
    "isibo",
    "/isibos",
    create_schema=IsiboCreate,
    update_schema=IsiboUpdate,
    out_schema=IsiboOut,
    create_perm=P.CREATE_ISIBO,
    update_perm=P.UPDATE_ISIBO,
    delete_perm=P.DELETE_ISIBO,
)
_leader_routes(isibos_router, LocationLevel.ISIBO, IsiboOut, P.ASSIGN_ISIBO_LEADERS, P.DEASSIGN_ISIBO_LEADERS)


@isibos_router.put("/{node_id}/members", response_model=IsiboOut)
def replace_isibo_members(
    node_id: uuid.UUID,
    payload: IsiboMembersIn,
    db: Session = Depends(get_db),
    p=Depends(require_permission(P.ADD_CITIZENS)),
):
    return svc.replace_members(db, node_id, [m.model_dump() for m in payload.members], principal=p)


houses_router = _crud_router(
    "house",
    "/houses",
    create_schema=HouseCreate,
    update_schema=HouseUpdate,
    out_schema=HouseOut,
    create_perm=P.CREATE_HOUSE,
    update_perm=P.UPDATE_HOUSE,
    delete_perm=P.DELETE_HOUSE,
)


@houses_router.post("/{node_id}/representative", response_model=HouseOut)
def assign_house_representative(
    node_id: uuid.UUID,
    payload: AssignUserIn,
    db: Session = Depends(get_db),
    p=Depends(require_permission(P.ASSIGN_HOUSE_REPRESENTATIVES)),
):
    return svc.assign_representative(db, node_id, payload.user_id, principal=p)


@houses_router.delete("/{node_id}/representative", response_model=HouseOut)
def remove_house_representative(
    node_id: uuid.UUID,
    db: Session = Depends(get_db),
    p=Depends(require_permission(P.DEASSIGN_HOUSE_REPRESENTATIVES)),
):
    return svc.remove_representative(db, node_id, principal=p)


search_router = APIRouter(prefix="/search", tags=["locations"])


@search_router.get("/locations")
def search_locations(
    q: Optional[str] = Query(default=None),
    types: Optional[list[str]] = Query(default=None),
    page: int = Query(default=1, ge=1),
    size: int = Query(default=DEFAULT_SIZE, ge=1, le=MAX_SIZE),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
) -> dict[str, Any]:
    return svc.search_locations(db, PageRequest(page=page, size=size), q=q, types=types)


routers = [
    provinces_router,
    districts_router,
    sectors_router,
    cells_router,
    villages_router,
    isibos_router,
    houses_router,
    search_router,
]
