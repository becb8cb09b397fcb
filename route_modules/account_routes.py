"""
Account Routes - coaches creating their users, and admin removal of coaches.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from auth import require_admin, require_employee
from models import CurrentUser, CreateUserRequest
from service_modules.account_service import AccountService, get_account_service

router = APIRouter()


@router.post("/api/employee/users")
def create_user(
    body: CreateUserRequest,
    user: CurrentUser = Depends(require_employee),
    service: AccountService = Depends(get_account_service)
):
    """Create a user assigned to the calling coach."""
    created = service.create_user(user, body)
    return JSONResponse(
        status_code=201,
        content={"success": True, "message": "User created with temporary password", "data": created}
    )


@router.get("/api/employee/users")
def list_my_users(
    user: CurrentUser = Depends(require_employee),
    service: AccountService = Depends(get_account_service)
):
    users = service.list_assigned_users(user)
    return {"success": True, "data": users, "count": len(users)}


@router.delete("/api/admin/employees/{employee_id}")
def delete_employee(
    employee_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: AccountService = Depends(get_account_service)
):
    result = service.delete_employee(admin, employee_id)
    return {
        "success": True,
        "message": "Employee, payment records, and subscriptions deleted successfully",
        "data": result,
    }
