"""Catalog router - read-only employees, statuses, clients and schedule types"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import CurrentUser, get_current_user
from ..database import get_db
from ..models import Client, Employee, ScheduleType, Status
from ..schemas import ClientResponse, EmployeeResponse, ScheduleTypeResponse, StatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Catalog"])


@router.get("/employees")
async def get_employees(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    employees = db.query(Employee).order_by(Employee.name).all()
    return {"success": True, "data": [EmployeeResponse.model_validate(e) for e in employees]}


@router.get("/employees/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    employee_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


@router.get("/statuses")
async def get_statuses(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    statuses = db.query(Status).order_by(Status.label).all()
    return {"success": True, "data": [StatusResponse.model_validate(s) for s in statuses]}


@router.get("/clients")
async def get_clients(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    clients = db.query(Client).order_by(Client.name).all()
    return {"success": True, "data": [ClientResponse.model_validate(c) for c in clients]}


@router.get("/clients/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    client = db.query(Client).filter(Client.id == client_id).first()
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.get("/schedule-types")
async def get_schedule_types(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    types = db.query(ScheduleType).order_by(ScheduleType.type_name).all()
    return {"success": True, "data": [ScheduleTypeResponse.model_validate(t) for t in types]}


@router.get("/schedule-types/{type_id}", response_model=ScheduleTypeResponse)
async def get_schedule_type(
    type_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    schedule_type = db.query(ScheduleType).filter(ScheduleType.id == type_id).first()
    if not schedule_type:
        raise HTTPException(status_code=404, detail="Schedule type not found")
    return schedule_type


@router.get("/combined-options")
async def get_combined_options(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Statuses and clients in one list, the input of the marker picker"""
    statuses = [
        {"id": s.id, "name": s.label, "color": s.color, "type": "status"}
        for s in db.query(Status).order_by(Status.label).all()
    ]
    clients = [
        {"id": c.id, "name": c.name, "color": c.color, "type": "client"}
        for c in db.query(Client).order_by(Client.name).all()
    ]
    return {"success": True, "data": statuses + clients, "statuses": statuses, "clients": clients}
