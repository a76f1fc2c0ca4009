import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import PayrollError, StoreError
from app.core.timeutil import utcnow
from app.database import SessionLocal
from app.models.payroll_run import PayrollRun
from app.models.payroll_settings import DEFAULT_PERIOD_END_DAY, DEFAULT_PERIOD_START_DAY, PayrollSettings
from app.services.payroll_periods import resolve_period, validate_day
from app.services.payroll_runs import generate_run

logger = logging.getLogger(__name__)

AUTORUN_SKIPPED = "skipped"
AUTORUN_CREATED = "created"
AUTORUN_ERROR = "error"


@dataclass(frozen=True)
class AutoRunResult:
    status: str
    reason: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    payroll_run_id: Optional[str] = None
    error_kind: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {"status": self.status}
        if self.reason is not None:
            payload["reason"] = self.reason
        if self.period_start is not None:
            payload["period_start"] = self.period_start.isoformat()
            payload["period_end"] = self.period_end.isoformat()
        if self.payroll_run_id is not None:
            payload["payroll_run_id"] = self.payroll_run_id
        if self.error_kind is not None:
            payload["error_kind"] = self.error_kind
        return payload


def find_settings(db: Session, company_id: int) -> Optional[PayrollSettings]:
    return (
        db.query(PayrollSettings)
        .filter(PayrollSettings.company_id == int(company_id))
        .one_or_none()
    )


def get_settings(db: Session, company_id: int) -> dict:
    settings = find_settings(db, company_id)
    if settings is None:
        return {
            "period_start_day": DEFAULT_PERIOD_START_DAY,
            "period_end_day": DEFAULT_PERIOD_END_DAY,
            "auto_generate": False,
            "last_generated_end_date": None,
        }
    return {
        "period_start_day": settings.period_start_day,
        "period_end_day": settings.period_end_day,
        "auto_generate": bool(settings.auto_generate),
        "last_generated_end_date": settings.last_generated_end_date,
    }


def update_settings(
    company_id: int,
    period_start_day: int,
    period_end_day: int,
    auto_generate: bool = False,
    *,
    db: Optional[Session] = None,
) -> PayrollSettings:
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    try:
        validate_day(period_start_day, "period_start_day")
        validate_day(period_end_day, "period_end_day")

        settings = find_settings(db, company_id)
        if settings is None:
            settings = PayrollSettings(company_id=int(company_id))
            db.add(settings)

        settings.period_start_day = int(period_start_day)
        settings.period_end_day = int(period_end_day)
        settings.auto_generate = bool(auto_generate)
        settings.updated_at = utcnow()
        db.flush()

        if owns_db:
            db.commit()

        logger.info(
            "Payroll settings updated",
            extra={
                "company_id": int(company_id),
                "period_start_day": int(period_start_day),
                "period_end_day": int(period_end_day),
                "auto_generate": bool(auto_generate),
            },
        )
        return settings
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def _skip(company_id: int, reason: str, period_start=None, period_end=None) -> AutoRunResult:
    logger.info(
        "Payroll auto-run skipped",
        extra={"company_id": int(company_id), "reason": reason},
    )
    return AutoRunResult(status=AUTORUN_SKIPPED, reason=reason, period_start=period_start, period_end=period_end)


def auto_run_tick(
    company_id: int,
    actor_id: str,
    today: Optional[date] = None,
    *,
    db: Optional[Session] = None,
) -> AutoRunResult:
    """
    Generate the most recently ended period's run if the company opted in.

    Domain failures are reported as an ``error`` result and leave nothing
    persisted, so the next tick retries. Store failures propagate.
    """
    owns_db = db is None
    if owns_db:
        db = SessionLocal()

    if today is None:
        today = utcnow().date()

    try:
        settings = find_settings(db, company_id)
        if settings is None or not settings.auto_generate:
            return _skip(company_id, "Auto-generate disabled")

        period_start, period_end = resolve_period(today, settings.period_start_day, settings.period_end_day)

        if settings.last_generated_end_date is not None and settings.last_generated_end_date >= period_end:
            return _skip(company_id, "Already generated for this period", period_start, period_end)

        existing = (
            db.query(PayrollRun.payroll_run_id)
            .filter(PayrollRun.company_id == int(company_id), PayrollRun.period_end == period_end)
            .first()
        )
        if existing is not None:
            return _skip(company_id, "Payroll already exists", period_start, period_end)

        # Guard failures happen before any write; StoreError leaves the session dirty.
        try:
            generated = generate_run(company_id, period_start, period_end, actor_id, today=today, db=db)
        except StoreError:
            raise
        except PayrollError as e:
            logger.warning(
                "Payroll auto-run failed",
                extra={
                    "company_id": int(company_id),
                    "period_start": period_start.isoformat(),
                    "period_end": period_end.isoformat(),
                    "error_kind": e.kind,
                    "error": e.message,
                },
            )
            return AutoRunResult(
                status=AUTORUN_ERROR,
                reason=e.message,
                period_start=period_start,
                period_end=period_end,
                error_kind=e.kind,
            )

        settings.last_generated_end_date = period_end
        settings.updated_at = utcnow()
        db.flush()

        if owns_db:
            db.commit()

        logger.info(
            "Payroll auto-run created run",
            extra={
                "company_id": int(company_id),
                "payroll_run_id": generated.run.payroll_run_id,
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
            },
        )
        return AutoRunResult(
            status=AUTORUN_CREATED,
            period_start=period_start,
            period_end=period_end,
            payroll_run_id=generated.run.payroll_run_id,
        )
    except Exception:
        if owns_db:
            db.rollback()
        raise
    finally:
        if owns_db:
            db.close()


def auto_generate_company_ids(db: Session):
    rows = (
        db.query(PayrollSettings.company_id)
        .filter(PayrollSettings.auto_generate.is_(True))
        .order_by(PayrollSettings.company_id.asc())
        .all()
    )
    return [int(r[0]) for r in rows]
