from enum import Enum

from fastapi import HTTPException, Request

from app.deps.auth import ActiveContext, resolve_active_context


class Role(Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


_RANK = {
    Role.EMPLOYEE: 1,
    Role.MANAGER: 2,
    Role.ADMIN: 3,
}


def has_role(ctx: ActiveContext, role: Role) -> bool:
    try:
        user_role = Role(ctx.role)
    except ValueError:
        return False
    return _RANK[user_role] >= _RANK[role]


def require_role(role: Role):
    def dependency(request: Request) -> ActiveContext:
        ctx = resolve_active_context(request)

        try:
            user_role = Role(ctx.role)
        except ValueError as exc:
            raise HTTPException(status_code=403, detail="Invalid role claim") from exc

        if _RANK[user_role] < _RANK[role]:
            raise HTTPException(status_code=403, detail="Insufficient role")

        request.state.user_id = ctx.actor_id
        request.state.company_id = ctx.company_id
        request.state.role = user_role.value
        return ctx

    return dependency
