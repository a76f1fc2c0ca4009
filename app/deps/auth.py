from dataclasses import dataclass

from fastapi import HTTPException, Request

from app.services.auth_service import active_context, verify_token


@dataclass(frozen=True)
class ActiveContext:
    actor_id: str
    company_id: int
    role: str


def _parse_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise HTTPException(status_code=401, detail="Invalid Authorization header")

    return parts[1].strip()


def _claims(request: Request) -> dict:
    token = _parse_bearer_token(request)
    try:
        return verify_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc


def resolve_active_context(request: Request) -> ActiveContext:
    claims = _claims(request)

    header_company_id = request.headers.get("X-Company-Id")
    if header_company_id is None:
        raise HTTPException(status_code=403, detail="Missing X-Company-Id header")

    try:
        header_company_id_int = int(header_company_id)
    except ValueError as exc:
        raise HTTPException(status_code=403, detail="Invalid X-Company-Id header") from exc

    try:
        context = active_context(claims, header_company_id_int)
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=401, detail="Invalid token claims") from exc

    return ActiveContext(
        actor_id=str(claims.get("sub")),
        company_id=context["company_id"],
        role=context["role"],
    )
