from fastapi import APIRouter, Depends, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.context import AppContext, get_app_context
from app.features.scan.schemas.scan import ScanCreateRequest, ScanCreateResponse
from app.features.scan.services.reporting.report_builder import (
    build_json_export,
    generate_pdf_report,
)
from app.platform.logger import get_logger
from app.platform.response import error_response

logger = get_logger(__name__)

router = APIRouter(prefix="/scans", tags=["scans"])

SCAN_NOT_FOUND = "Scan not found"


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=ScanCreateResponse)
async def create_scan(
    payload: ScanCreateRequest,
    context: AppContext = Depends(get_app_context),
):
    """
    Start a scan. Returns immediately with the pending record's id; poll
    `GET /scans/{id}` for progress.
    """
    max_pages_limit = context.settings.SCAN_MAX_PAGES
    if payload.max_pages is not None and payload.max_pages > max_pages_limit:
        raise RequestValidationError(
            [
                {
                    "type": "less_than_equal",
                    "loc": ("body", "maxPages"),
                    "msg": f"maxPages must be at most {max_pages_limit}",
                    "input": payload.max_pages,
                }
            ]
        )

    options = payload.to_options(max_pages_limit)
    record = await context.store.create(payload.site_url, options)
    logger.info(
        f"[{record.id}] Scan requested for {record.site_url} "
        f"(max_pages={options.max_pages}, jurisdiction={options.jurisdiction_code})"
    )

    await context.dispatcher.enqueue(record.id, record.site_url, options)

    body = ScanCreateResponse(id=record.id, status=record.status)
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=body.model_dump(mode="json", by_alias=True),
    )


@router.get("/{scan_id}")
async def get_scan(scan_id: str, context: AppContext = Depends(get_app_context)):
    record = await context.store.get(scan_id)
    if record is None:
        return error_response(SCAN_NOT_FOUND, status.HTTP_404_NOT_FOUND)
    return JSONResponse(content=record.model_dump(mode="json", by_alias=True))


@router.get("/{scan_id}/export")
async def export_scan(scan_id: str, context: AppContext = Depends(get_app_context)):
    record = await context.store.get(scan_id)
    if record is None:
        return error_response(SCAN_NOT_FOUND, status.HTTP_404_NOT_FOUND)
    return JSONResponse(content=build_json_export(record))


@router.get("/{scan_id}/report.pdf")
async def scan_report_pdf(scan_id: str, context: AppContext = Depends(get_app_context)):
    record = await context.store.get(scan_id)
    if record is None:
        return error_response(SCAN_NOT_FOUND, status.HTTP_404_NOT_FOUND)

    pdf = await run_in_threadpool(generate_pdf_report, record)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="wcag-report-{record.id}.pdf"'},
    )
