from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from app.schemas.applications import (
    ApplicationRecord,
    ApplicationStatus,
    ApplicationSubmitRequest,
    DashboardSummary,
    DeleteApplicationResponse,
    StatusUpdateRequest,
    SubmitApplicationResponse,
)
from app.services.container import application_service, config
from app.utils.auth_dependencies import get_current_staff
from app.utils.exceptions import NotFoundError, PortalError, SubmissionRejected
from app.utils.limiter import limiter
from app.utils.logger import get_logger

logger = get_logger(__name__)

# Public submission plus staff review endpoints
router = APIRouter(prefix="/api", tags=["Applications"])


@router.post(
    "/applications",
    response_model=SubmitApplicationResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(config.portal.submit_rate_limit)
async def submit_application(request: Request, body: ApplicationSubmitRequest):
    """
    Public registration form submission.

    Files arrive base64 encoded inside the JSON envelope; they are decoded,
    checked against size/type limits and handed to storage.
    """
    try:
        logger.info(f"[API] Application submission: kind={body.kind}, files={sorted(body.files)}")
        record = application_service.submit_application(body.kind, body.data, body.files)
        return SubmitApplicationResponse(
            success=True,
            id=record["id"],
            status=record["status"],
            message="Information submitted successfully.",
        )
    except SubmissionRejected as e:
        logger.warning(f"[API] Submission rejected: {e.message}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except PortalError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


@router.get("/applications", response_model=List[ApplicationRecord])
async def list_applications(
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    department: Optional[str] = None,
    current_staff: dict = Depends(get_current_staff),
):
    """
    Full collection of applications, newest first.
    Requires staff authentication.
    """
    try:
        return application_service.list_applications(
            status=status_filter.value if status_filter else None,
            department=department,
        )
    except PortalError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


@router.get("/applications/export")
async def export_applications(
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    department: Optional[str] = None,
    current_staff: dict = Depends(get_current_staff),
):
    """
    Export applications as CSV.
    Requires staff authentication.
    """
    try:
        records = application_service.list_applications(
            status=status_filter.value if status_filter else None,
            department=department,
        )
        csv_text = application_service.export_csv(records)
    except PortalError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    logger.info(f"[API] Exported {len(records)} application(s) for {current_staff.get('email')}")
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="candidates.csv"'},
    )


@router.get("/applications/{application_id}", response_model=ApplicationRecord)
async def get_application(application_id: str, current_staff: dict = Depends(get_current_staff)):
    try:
        record = application_service.get_application(application_id)
    except PortalError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return record


@router.patch("/applications/{application_id}/status", response_model=ApplicationRecord)
async def update_application_status(
    application_id: str,
    body: StatusUpdateRequest,
    current_staff: dict = Depends(get_current_staff),
):
    """
    Set an application's lifecycle status (Pending / Verified / Rejected).
    Requires staff authentication.
    """
    try:
        record = application_service.update_status(application_id, body.status)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    except PortalError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    logger.info(f"[API] {current_staff.get('email')} set {application_id} to {body.status.value}")
    return record


@router.delete("/applications/{application_id}", response_model=DeleteApplicationResponse)
async def delete_application(application_id: str, current_staff: dict = Depends(get_current_staff)):
    """
    Delete an application.
    Requires staff authentication.
    """
    try:
        application_service.delete_application(application_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    except PortalError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    logger.info(f"[API] {current_staff.get('email')} deleted {application_id}")
    return DeleteApplicationResponse(success=True, message=f"Application {application_id} deleted")


@router.get("/dashboard/summary", response_model=DashboardSummary)
async def dashboard_summary(current_staff: dict = Depends(get_current_staff)):
    """Counts by status, department breakdown and recent submissions."""
    try:
        records = application_service.list_applications()
    except PortalError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return application_service.summarize(records)
