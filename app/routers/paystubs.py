from fastapi import APIRouter, Depends

from app.core.authorization import Role, has_role, require_role
from app.core.errors import NotFound
from app.database import SessionLocal
from app.deps.auth import ActiveContext
from app.routers.payroll import stub_response
from app.schemas.payroll import PayStubResponse
from app.services import pay_stubs, time_ledger

router = APIRouter(tags=["Pay Stubs"])


@router.get("/paystubs/{pay_stub_id}", response_model=PayStubResponse)
def get_pay_stub(
    pay_stub_id: int,
    ctx: ActiveContext = Depends(require_role(Role.EMPLOYEE)),
):
    db = SessionLocal()
    try:
        stub = pay_stubs.get_stub(db, ctx.company_id, pay_stub_id)
        if not has_role(ctx, Role.MANAGER):
            employee = time_ledger.employee_for_actor(db, ctx.company_id, ctx.actor_id)
            if stub.employee_id != employee.id:
                # Same answer as a missing stub; other employees' stubs are not disclosed.
                raise NotFound("Pay stub not found", pay_stub_id=int(pay_stub_id))
        return stub_response(db, stub)
    finally:
        db.close()


@router.get("/employee/paystubs", response_model=list[PayStubResponse])
def my_pay_stubs(
    ctx: ActiveContext = Depends(require_role(Role.EMPLOYEE)),
):
    db = SessionLocal()
    try:
        employee = time_ledger.employee_for_actor(db, ctx.company_id, ctx.actor_id)
        stubs = pay_stubs.employee_stubs(db, ctx.company_id, employee.id)
        return [stub_response(db, s) for s in stubs]
    finally:
        db.close()
