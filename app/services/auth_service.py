from datetime import datetime, timedelta, timezone
import os
from typing import Iterable, List, Optional

import jwt

JWT_ALGORITHM = "HS256"
JWT_EXP_HOURS = 8
DEFAULT_ROLE = "MANAGER"


def _get_jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise ValueError("JWT_SECRET is required")
    if len(secret) < 32:
        raise ValueError("JWT_SECRET must be at least 32 characters")
    return secret


def create_access_token(
    user_id: str,
    company_id: int,
    role: Optional[str] = None,
    company_ids: Optional[Iterable[int]] = None,
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "company_id": int(company_id),
        "exp": now + timedelta(hours=JWT_EXP_HOURS),
    }
    if role:
        payload["role"] = str(role).upper()
    if company_ids:
        payload["company_ids"] = sorted({int(c) for c in company_ids} | {int(company_id)})
    return jwt.encode(payload, _get_jwt_secret(), algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, _get_jwt_secret(), algorithms=[JWT_ALGORITHM])
    except Exception as exc:
        raise ValueError("Invalid or expired token") from exc

    if "sub" not in payload or "company_id" not in payload:
        raise ValueError("Invalid token claims")

    return payload


def resolve_actor_companies(claims: dict) -> List[int]:
    """Companies the token holder may act in; the home company is always included."""
    companies = {int(claims["company_id"])}
    extra = claims.get("company_ids") or []
    if not isinstance(extra, list):
        raise ValueError("Invalid token claims")
    companies.update(int(c) for c in extra)
    return sorted(companies)


def active_context(claims: dict, requested_company_id: Optional[int] = None) -> dict:
    """Resolve the company the request acts in and the role held there."""
    companies = resolve_actor_companies(claims)
    company_id = int(claims["company_id"]) if requested_company_id is None else int(requested_company_id)
    if company_id not in companies:
        raise PermissionError("Company mismatch")
    return {
        "company_id": company_id,
        "role": str(claims.get("role") or DEFAULT_ROLE).upper(),
        "company_ids": companies,
    }
