"""
Employee Payment Routes - public signup checkout and the admin payment list.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from auth import require_admin
from models import CurrentUser, EmployeePaymentCreate
from service_modules.employee_payment_service import EmployeePaymentService, get_employee_payment_service

router = APIRouter()


@router.post("/api/employee-payments/submit")
def submit_employee_payment(
    body: EmployeePaymentCreate,
    service: EmployeePaymentService = Depends(get_employee_payment_service)
):
    """Record a signup payment and open its subscription. Public."""
    result = service.submit_payment(body)
    return JSONResponse(
        status_code=201,
        content={"success": True, "message": "Payment recorded successfully and subscription created", "data": result}
    )


@router.get("/api/employee-payments/all")
def list_employee_payments(
    admin: CurrentUser = Depends(require_admin),
    service: EmployeePaymentService = Depends(get_employee_payment_service)
):
    payments = service.list_payments()
    return {"success": True, "data": payments, "count": len(payments)}


@router.delete("/api/employee-payments/{payment_id}")
def delete_employee_payment(
    payment_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: EmployeePaymentService = Depends(get_employee_payment_service)
):
    result = service.delete_payment(payment_id)
    return {"success": True, "message": "Employee payment deleted successfully", "data": result}
