"""
API Routes

JSON endpoints for driving a sweep: router connection, interface
validation, scan start/stop, ad-hoc status, scan history and export.
"""

import asyncio
import csv
import io
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from config import EXPORT_FORMATS, MAX_EXPORT_RECORDS, RESULT_RETENTION_DAYS
from modules.settings import ScanSettings

logger = logging.getLogger(__name__)

router = APIRouter()

_EXPORT_PATTERN = "^(" + "|".join(EXPORT_FORMATS) + ")$"


# ─── Helper Functions ─────────────────────────────────────────────────────────

def _get_db(request: Request):
    """Get the database manager or raise 503."""
    db = request.app.state.db_manager
    if not db:
        raise HTTPException(status_code=503, detail="Database not available")
    return db


def _get_controller(request: Request):
    """Get the scan controller or raise 503."""
    controller = request.app.state.controller
    if not controller:
        raise HTTPException(status_code=503, detail="Scan controller not available")
    return controller


async def _read_settings(request: Request, validate: bool = False) -> ScanSettings:
    """
    Build ScanSettings from the JSON body.

    Raises SettingsError (rendered as 422) when ``validate`` is set and
    the settings are inconsistent.
    """
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")

    settings = ScanSettings.from_dict(body)
    if validate:
        settings.ensure_valid()
    return settings


async def _run_blocking(func, *args):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: func(*args))


# ─── Settings ─────────────────────────────────────────────────────────────────

@router.get("/api/settings/defaults")
async def get_default_settings():
    """Factory default settings (password omitted)."""
    return ScanSettings.defaults().to_dict(include_password=False)


@router.post("/api/settings/validate")
async def validate_settings(request: Request):
    """Check settings without touching the router."""
    settings = await _read_settings(request)
    errors = settings.validate()
    return {
        "valid": not errors,
        "errors": errors,
        "combination_count": len(settings.combinations()) if not errors else 0,
    }


# ─── Connection ───────────────────────────────────────────────────────────────

@router.post("/api/connect")
async def connect(request: Request):
    """Open the SSH session to the router."""
    controller = _get_controller(request)
    settings = await _read_settings(request)

    if controller.is_running():
        raise HTTPException(status_code=409, detail="A scan is running")

    connected = await _run_blocking(controller.connect, settings)
    failure = controller.last_failure
    return {
        "success": connected,
        "connected": controller.is_connected,
        "error": failure.to_dict() if not connected and failure else None,
    }


@router.post("/api/disconnect")
async def disconnect(request: Request):
    """Close the SSH session, stopping any running sweep first."""
    controller = _get_controller(request)
    await _run_blocking(controller.disconnect)
    return {"success": True, "connected": controller.is_connected}


@router.post("/api/interfaces/validate")
async def validate_interface(request: Request):
    """Check that the interface exists on the router and list the available ones."""
    controller = _get_controller(request)
    settings = await _read_settings(request)

    result = await _run_blocking(controller.validate_interface, settings)
    return result.to_dict()


# ─── Scan Control ─────────────────────────────────────────────────────────────

@router.post("/api/scan/start")
async def start_scan(request: Request):
    """Start a sweep in the background."""
    controller = _get_controller(request)
    settings = await _read_settings(request, validate=True)

    if not controller.is_connected:
        raise HTTPException(status_code=409, detail="Not connected to the router")

    if not controller.start_scan(settings):
        raise HTTPException(status_code=409, detail="A scan is already running")

    logger.info(
        f"Scan started on {settings.router_host}/{settings.interface_name}: "
        f"{len(settings.combinations())} combinations"
    )
    return {
        "success": True,
        "combination_count": len(settings.combinations()),
        "state": controller.get_state(),
    }


@router.post("/api/scan/stop")
async def stop_scan(request: Request):
    """Request cancellation of the running sweep."""
    controller = _get_controller(request)
    stopped = controller.stop_scan()
    return {"success": stopped, "state": controller.get_state()}


@router.get("/api/scan/state")
async def get_scan_state(request: Request):
    """Current controller state and the last report's error, if any."""
    controller = _get_controller(request)
    state = controller.get_state()
    report = controller.last_report
    if report is not None:
        state["available_interfaces"] = list(report.available_interfaces)
    return state


@router.post("/api/status")
async def get_current_status(request: Request):
    """Read the link's current telemetry without changing anything."""
    controller = _get_controller(request)
    settings = await _read_settings(request)

    if not controller.is_connected:
        raise HTTPException(status_code=409, detail="Not connected to the router")

    result = await _run_blocking(controller.get_current_status, settings)
    if result is None:
        raise HTTPException(status_code=409, detail="A scan is running")
    return result.to_dict()


# ─── History ──────────────────────────────────────────────────────────────────

@router.get("/api/scans")
async def get_scans(
    request: Request,
    limit: int = Query(20, ge=1, le=500, description="Maximum number of runs"),
):
    """Recent sweeps, newest first."""
    db = _get_db(request)

    try:
        runs = db.get_recent_runs(limit=limit)
        return {"count": len(runs), "scans": [run.to_dict() for run in runs]}
    except Exception as e:
        logger.error(f"Error getting scans: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/api/scans/{run_id}")
async def get_scan(request: Request, run_id: int):
    """One sweep with its best successful result."""
    db = _get_db(request)

    run = db.get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Scan not found")

    best = db.get_best_result(run_id)
    data = run.to_dict()
    data["best_result"] = best.to_dict() if best else None
    return data


@router.get("/api/scans/{run_id}/results")
async def get_scan_results(
    request: Request,
    run_id: int,
    status: Optional[str] = Query(None, pattern="^(base|success|error)$"),
):
    """Results of one sweep in emission order."""
    db = _get_db(request)

    if not db.get_run(run_id):
        raise HTTPException(status_code=404, detail="Scan not found")

    records = db.get_run_results(run_id, status=status)
    return {
        "scan_id": run_id,
        "count": len(records),
        "results": [record.to_dict() for record in records],
    }


@router.get("/api/scans/{run_id}/export")
async def export_scan(
    request: Request,
    run_id: int,
    format: str = Query("json", pattern=_EXPORT_PATTERN, description="Export format"),
):
    """Export one sweep's results as JSON or CSV."""
    db = _get_db(request)

    run = db.get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Scan not found")

    data = [record.to_dict() for record in db.get_run_results(run_id, limit=MAX_EXPORT_RECORDS)]

    if format == "json":
        return JSONResponse(
            content={
                "scan": run.to_dict(),
                "count": len(data),
                "exported_at": datetime.now().isoformat(),
                "results": data,
            }
        )

    if not data:
        raise HTTPException(status_code=404, detail="No data to export")

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=list(data[0].keys()))
    writer.writeheader()
    writer.writerows(data)

    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename=linktuner_scan_{run_id}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
        }
    )


# ─── Maintenance ──────────────────────────────────────────────────────────────

@router.post("/api/maintenance/cleanup")
async def cleanup(
    request: Request,
    days: int = Query(RESULT_RETENTION_DAYS, ge=1, description="Retention in days"),
):
    """Delete sweeps older than ``days``."""
    db = _get_db(request)
    return db.cleanup_old_data(days=days)


__all__ = ["router"]
