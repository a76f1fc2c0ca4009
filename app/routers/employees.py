from typing import List

from fastapi import APIRouter, Depends

from app.core.authorization import Role, require_role
from app.core.errors import NotFound
from app.database import SessionLocal
from app.deps.auth import ActiveContext
from app.models.employee import Employee
from app.schemas.employee import EmployeeCreate, EmployeeResponse

router = APIRouter(prefix="/employees", tags=["Employees"])


@router.post("", response_model=EmployeeResponse)
def create_employee(
    payload: EmployeeCreate,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        row = Employee(
            company_id=ctx.company_id,
            user_id=payload.user_id,
            name=payload.name,
            hourly_rate=payload.hourly_rate,
            is_active=True,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@router.get("", response_model=List[EmployeeResponse])
def list_employees(
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        rows = (
            db.query(Employee)
            .filter(Employee.company_id == ctx.company_id)
            .order_by(Employee.id.asc())
            .all()
        )
        return rows
    finally:
        db.close()


@router.get("/{employee_id}", response_model=EmployeeResponse)
def get_employee(
    employee_id: int,
    ctx: ActiveContext = Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        row = (
            db.query(Employee)
            .filter(
                Employee.id == int(employee_id),
                Employee.company_id == ctx.company_id,
            )
            .first()
        )
        if row is None:
            raise NotFound("Employee not found", employee_id=int(employee_id))
        return row
    finally:
        db.close()
