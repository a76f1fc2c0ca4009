import asyncio
import logging
import os
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session

from app.database import SessionLocal, is_postgres
from app.services.payroll_autorun import AutoRunResult, auto_generate_company_ids, auto_run_tick

logger = logging.getLogger(__name__)

AUTORUN_ACTOR_ID = "system:payroll-autorun"


def autorun_worker_enabled() -> bool:
    # Disable by default under pytest to keep tests deterministic.
    if os.getenv("PYTEST_CURRENT_TEST"):
        return False
    v = os.getenv("PAYROLL_AUTORUN_ENABLED")
    if v is None:
        return False
    return v.strip() not in {"", "0", "false", "False", "no", "NO"}


def try_acquire_autorun_lock(db: Session) -> bool:
    if not is_postgres(db):
        return True
    res = db.execute(text("select pg_try_advisory_lock(4244, 4245)")).scalar()
    return bool(res)


def release_autorun_lock(db: Session) -> None:
    if is_postgres(db):
        db.execute(text("select pg_advisory_unlock(4244, 4245)"))


def tick_all_companies(today: Optional[date] = None) -> List[Tuple[int, AutoRunResult]]:
    """Run one auto-run tick for every company with auto-generate on, each in its own transaction."""
    db: Session = SessionLocal()
    try:
        company_ids = auto_generate_company_ids(db)
    finally:
        db.close()

    results = []
    for company_id in company_ids:
        try:
            result = auto_run_tick(company_id, AUTORUN_ACTOR_ID, today=today)
        except (OperationalError, DBAPIError):
            # Connection-level failure: abort the pass, the loop disposes the engine and retries.
            raise
        except Exception:
            # A failure scoped to one company (StoreError included) must not starve the others.
            logger.exception(
                "Payroll auto-run tick crashed",
                extra={"component": "payroll_autorun_worker", "company_id": company_id},
            )
            continue
        results.append((company_id, result))
    return results


async def autorun_worker_loop(*, poll_seconds: float = 3600.0) -> None:
    """
    Single-worker loop.

    Only the process holding the advisory lock ticks. Transient DB failures
    are logged and retried on the next poll.
    """
    logger.info("Payroll auto-run worker started", extra={"poll_seconds": float(poll_seconds)})

    while True:
        lock_db: Session = SessionLocal()
        have_lock = False

        try:
            have_lock = try_acquire_autorun_lock(lock_db)
            if have_lock:
                results = await asyncio.to_thread(tick_all_companies)
                created = sum(1 for _, r in results if r.status == "created")
                logger.info(
                    "Payroll auto-run pass completed",
                    extra={"companies": len(results), "created": created},
                )

        except asyncio.CancelledError:
            logger.info("Payroll auto-run worker cancelled; shutting down")
            raise

        except (OperationalError, DBAPIError):
            logger.exception(
                "Payroll auto-run worker tick failed",
                extra={"component": "payroll_autorun_worker", "reason": "dbapi_error"},
            )
            try:
                engine = lock_db.get_bind()
                if engine is not None and hasattr(engine, "dispose"):
                    engine.dispose()
            except Exception:
                pass

        except Exception:
            # Do NOT crash the server; log and keep trying.
            logger.exception(
                "Payroll auto-run worker tick failed",
                extra={"component": "payroll_autorun_worker", "reason": "unexpected"},
            )

        finally:
            try:
                if have_lock:
                    release_autorun_lock(lock_db)
            except Exception:
                pass
            try:
                lock_db.close()
            except Exception:
                pass

        await asyncio.sleep(poll_seconds)


def start_autorun_worker_task() -> asyncio.Task | None:
    if not autorun_worker_enabled():
        logger.info("Payroll auto-run worker disabled")
        return None

    poll_seconds = float(os.getenv("PAYROLL_AUTORUN_POLL_SECONDS", "3600"))
    return asyncio.create_task(autorun_worker_loop(poll_seconds=poll_seconds))
