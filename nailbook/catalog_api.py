from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from .auth_api import admin_identity
from .authn import AuthIdentity
from .db import get_db
from .schemas import ServiceCreate, ServiceOut, ServiceStatsOut, ServiceUpdate
from .services import (
    create_service,
    delete_service,
    get_service,
    list_services,
    service_stats,
    update_service,
)

router = APIRouter(prefix="/api/services", tags=["services"])


@router.get("", response_model=List[ServiceOut])
def get_services(
    category: Optional[str] = Query(default=None),
    is_active: Optional[bool] = Query(default=None, alias="isActive"),
    db: Session = Depends(get_db),
):
    return list_services(db, category=category, is_active=is_active)


@router.get("/stats/overview", response_model=ServiceStatsOut)
def get_service_stats(db: Session = Depends(get_db), _: AuthIdentity = Depends(admin_identity)):
    return ServiceStatsOut(**service_stats(db))


@router.get("/{service_id}", response_model=ServiceOut)
def get_service_detail(service_id: str, db: Session = Depends(get_db)):
    service = get_service(db, service_id)
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return service


@router.post("", response_model=ServiceOut, status_code=status.HTTP_201_CREATED)
def add_service(
    payload: ServiceCreate,
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    return create_service(db, **payload.model_dump())


@router.put("/{service_id}", response_model=ServiceOut)
def put_service(
    service_id: str,
    payload: ServiceUpdate,
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    service = update_service(db, service_id, payload.model_dump(exclude_unset=True))
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return service


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_service(
    service_id: str,
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    if not delete_service(db, service_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
