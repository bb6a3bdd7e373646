"""
Operator and health routes.

- /health/live, /health/ready: deployment probes
- /followups/stats: follow-up counts per state
- /followups/reconcile: run a reconciliation tick now

/followups/* require X-Admin-Token when ADMIN_TOKEN is set.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from config import Config
from infra.bootstrap import RelayBootstrap, get_relay
from relay.errors import StorageError
from relay.store import run_blocking

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Operations"])


def require_admin(x_admin_token: Optional[str] = Header(None)) -> None:
    expected = Config.ADMIN_TOKEN
    if not expected:
        return
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin token"
        )


@router.get("/health/live")
async def health_live():
    """Liveness probe."""
    return {"status": "alive"}


@router.get("/health/ready")
async def health_ready(relay: RelayBootstrap = Depends(get_relay)):
    """Readiness probe: notifier configured and reconciliation loop running."""
    problems = list(relay.notifier.config_problems())
    if not relay.scheduler.is_running:
        problems.append("reconciliation loop not running")

    if problems:
        return {"status": "not_ready", "reasons": problems}
    return {"status": "ready"}


@router.get("/followups/stats", dependencies=[Depends(require_admin)])
async def followup_stats(relay: RelayBootstrap = Depends(get_relay)):
    """Follow-up counts per state."""
    try:
        counts = await run_blocking(relay.store.count_by_state)
    except StorageError as e:
        logger.error(f"Stats query failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Store unavailable"
        )
    return {
        "followups": counts,
        "ticks": relay.scheduler.ticks,
        "tick_running": relay.engine.running,
    }


@router.post("/followups/reconcile", dependencies=[Depends(require_admin)])
async def reconcile_now(relay: RelayBootstrap = Depends(get_relay)):
    """Run one reconciliation tick (skipped if one is already running)."""
    report = await relay.scheduler.trigger()
    return report.as_dict()
