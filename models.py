from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class CamelModel(BaseModel):
    # Bodies arrive camelCased from the web frontend
    model_config = ConfigDict(populate_by_name=True)


# --- AUTH ---
class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None
    role: str
    display_name: Optional[str] = None
    is_active: bool = True
    assigned_employee_id: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


# --- SUBSCRIPTIONS ---
class RenewSubscriptionRequest(CamelModel):
    employee_id: Optional[str] = Field(None, alias="employeeId")
    plan: Optional[str] = None


# --- CHAT ---
class SendMessageRequest(CamelModel):
    recipient_id: Optional[str] = Field(None, alias="recipientId")
    content: Optional[str] = None
    type: str = "text"


class CreateOrGetChatRequest(CamelModel):
    other_user_id: Optional[str] = Field(None, alias="otherUserId")


class ReactionRequest(CamelModel):
    chat_id: Optional[str] = Field(None, alias="chatId")
    message_id: Optional[str] = Field(None, alias="messageId")
    emoji: Optional[str] = None


# --- EMPLOYEE REQUESTS ---
class EmployeeRequestCreate(CamelModel):
    full_name: Optional[str] = Field(None, alias="fullName")
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[str] = Field(None, alias="dateOfBirth")
    notes: Optional[str] = None
    selected_plan: Optional[str] = Field(None, alias="selectedPlan")
    amount: Optional[float] = None


class RejectEmployeeRequest(BaseModel):
    reason: Optional[str] = None


# --- EMPLOYEE PAYMENTS ---
class EmployeePaymentCreate(CamelModel):
    full_name: Optional[str] = Field(None, alias="fullName")
    email: Optional[str] = None
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    address: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[str] = Field(None, alias="dateOfBirth")
    notes: Optional[str] = None
    selected_plan: Optional[str] = Field(None, alias="selectedPlan")


# --- USER PROVISIONING ---
class CreateUserRequest(CamelModel):
    email: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    # Only honoured for admin callers; employees always own the users they create
    assigned_employee_id: Optional[str] = Field(None, alias="assignedEmployeeId")
