"""
Employee Request Routes - public coach signup and admin approval.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from auth import require_admin
from models import CurrentUser, EmployeeRequestCreate, RejectEmployeeRequest
from service_modules.employee_request_service import EmployeeRequestService, get_employee_request_service

router = APIRouter()


@router.post("/api/employee-requests")
def create_employee_request(
    body: EmployeeRequestCreate,
    service: EmployeeRequestService = Depends(get_employee_request_service)
):
    """Submit a signup request. Public."""
    request = service.create_request(body)
    return JSONResponse(
        status_code=201,
        content={"success": True, "message": "Employee request submitted successfully", "data": request}
    )


@router.get("/api/employee-requests")
def list_employee_requests(
    admin: CurrentUser = Depends(require_admin),
    service: EmployeeRequestService = Depends(get_employee_request_service)
):
    return {"success": True, "data": service.list_requests()}


@router.post("/api/employee-requests/approve/{request_id}")
def approve_employee_request(
    request_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: EmployeeRequestService = Depends(get_employee_request_service)
):
    result = service.approve_request(admin, request_id)
    message = "Employee account created successfully"
    if not result["emailSent"]:
        message += ", but the credentials email could not be sent"
    return {"success": True, "message": message, "data": result}


@router.post("/api/employee-requests/reject/{request_id}")
def reject_employee_request(
    request_id: str,
    body: RejectEmployeeRequest = None,
    admin: CurrentUser = Depends(require_admin),
    service: EmployeeRequestService = Depends(get_employee_request_service)
):
    reason = body.reason if body else None
    return {"success": True, "message": "Request rejected", "data": service.reject_request(admin, request_id, reason)}
