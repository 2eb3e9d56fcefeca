from datetime import date
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, field_validator, model_validator

from casamia.database.models import (
    Role, ApartmentType, BeverageCategory, UtilityType, PaymentMethod, TimeSlot,
    MaintenanceCategory, MaintenancePriority, MaintenanceStatus, LeaveType
)


def _parse_amount(v):
    if isinstance(v, str):
        # Replace common separators
        v = v.replace(',', '.').replace(' ', '')
    return v


# ========== Auth & users ==========

class LoginRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class EmergencyContact(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = Field(default=None, pattern=r'^\+?[\d\s-]{7,20}$')
    relationship: Optional[str] = None


class TenantInfoIn(BaseModel):
    apartment_id: Optional[int] = None
    room_number: Optional[str] = None
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    monthly_rent: float = Field(default=0, ge=0)
    security_deposit: float = Field(default=0, ge=0)
    emergency_contact: Optional[EmergencyContact] = None

    @field_validator('monthly_rent', 'security_deposit', mode='before')
    def parse_amount(cls, v):
        return _parse_amount(v)

    @model_validator(mode='after')
    def check_lease_window(self):
        if self.lease_start_date and self.lease_end_date and self.lease_end_date < self.lease_start_date:
            raise ValueError("Lease end date must be after lease start date")
        return self


class WorkerInfo(BaseModel):
    department: Optional[str] = None
    position: Optional[str] = None
    hire_date: Optional[date] = None
    salary: Optional[float] = Field(default=None, ge=0)


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    password: str = Field(min_length=6)
    role: Role = Role.tenant
    phone: Optional[str] = Field(default=None, pattern=r'^\+?[\d\s-]{7,20}$')
    tenant_info: Optional[TenantInfoIn] = None
    worker_info: Optional[WorkerInfo] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    phone: Optional[str] = Field(default=None, pattern=r'^\+?[\d\s-]{7,20}$')
    tenant_info: Optional[TenantInfoIn] = None
    worker_info: Optional[WorkerInfo] = None


class ApartmentAssign(BaseModel):
    apartment_id: int = Field(gt=0)


class ArchiveRequest(BaseModel):
    reason: str = Field(default="Lease ended", max_length=500)


# ========== Apartments & beverages ==========

class ApartmentCreate(BaseModel):
    unit_number: str = Field(min_length=1)
    building: str = Field(min_length=1)
    floor: int = Field(ge=0)
    apartment_type: ApartmentType
    bedrooms: int = Field(default=1, ge=0)
    bathrooms: int = Field(default=1, ge=0)
    area: Optional[float] = Field(default=None, gt=0)
    rent: float = Field(ge=0)
    deposit: float = Field(default=0, ge=0)
    amenities: List[str] = []
    description: Optional[str] = None

    @field_validator('rent', 'deposit', mode='before')
    def parse_amount(cls, v):
        return _parse_amount(v)


class ApartmentUpdate(BaseModel):
    unit_number: Optional[str] = Field(default=None, min_length=1)
    building: Optional[str] = None
    floor: Optional[int] = Field(default=None, ge=0)
    apartment_type: Optional[ApartmentType] = None
    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[int] = Field(default=None, ge=0)
    area: Optional[float] = Field(default=None, gt=0)
    rent: Optional[float] = Field(default=None, ge=0)
    deposit: Optional[float] = Field(default=None, ge=0)
    amenities: Optional[List[str]] = None
    description: Optional[str] = None


class BeverageCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    category: BeverageCategory
    price: float = Field(ge=0)
    description: Optional[str] = None
    is_available: bool = True
    stock_quantity: int = Field(default=0, ge=0)

    @field_validator('price', mode='before')
    def parse_amount(cls, v):
        return _parse_amount(v)


class BeverageUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    category: Optional[BeverageCategory] = None
    price: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = None
    is_available: Optional[bool] = None
    stock_quantity: Optional[int] = Field(default=None, ge=0)


# ========== Cart & consumption ==========

class CartItemAdd(BaseModel):
    beverage_id: int = Field(gt=0)
    quantity: int = Field(default=1, ge=1, le=100)


class CartItemUpdate(BaseModel):
    quantity: int = Field(le=100)  # <= 0 removes the line


class ConsumptionPaymentUpdate(BaseModel):
    payment_status: Literal["paid", "cancelled"]
    payment_method: Optional[PaymentMethod] = None


# ========== Bills ==========

class UtilityReadingIn(BaseModel):
    utility_type: UtilityType
    previous_reading: float = Field(default=0, ge=0)
    current_reading: float = Field(ge=0)
    rate: float = Field(ge=0)

    @field_validator('previous_reading', 'current_reading', 'rate', mode='before')
    def parse_amount(cls, v):
        return _parse_amount(v)


class AdjustmentIn(BaseModel):
    description: str = Field(min_length=1)
    amount: float = Field(ge=0)

    @field_validator('amount', mode='before')
    def parse_amount(cls, v):
        return _parse_amount(v)


class BillCreate(BaseModel):
    tenant_id: int = Field(gt=0)
    billing_period_start: date
    billing_period_end: date
    utilities: List[UtilityReadingIn] = []
    additional_charges: List[AdjustmentIn] = []
    discounts: List[AdjustmentIn] = []
    tax: float = Field(default=0, ge=0)
    due_date: Optional[date] = None
    status: Literal["draft", "sent"] = "draft"
    admin_notes: Optional[str] = None

    @model_validator(mode='after')
    def check_period(self):
        if self.billing_period_end < self.billing_period_start:
            raise ValueError("Billing period end must not be before its start")
        return self


class BillUpdate(BaseModel):
    utilities: Optional[List[UtilityReadingIn]] = None
    additional_charges: Optional[List[AdjustmentIn]] = None
    discounts: Optional[List[AdjustmentIn]] = None
    tax: Optional[float] = Field(default=None, ge=0)
    due_date: Optional[date] = None
    admin_notes: Optional[str] = None


class BillIds(BaseModel):
    bill_ids: List[int] = Field(min_length=1)


class BillReview(BaseModel):
    action: Literal["approve", "reject"]
    notes: Optional[str] = None


class BillPayment(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.cash


class BillCancel(BaseModel):
    notes: Optional[str] = None


class MonthlySweepRequest(BaseModel):
    year: Optional[int] = Field(default=None, ge=2000, le=2100)
    month: Optional[int] = Field(default=None, ge=1, le=12)


# ========== Rooftop reservations ==========

class ReservationCreate(BaseModel):
    reservation_date: date
    time_slot: TimeSlot
    number_of_guests: int = Field(ge=1, le=20)
    purpose: Optional[str] = Field(default=None, max_length=500)
    special_requests: Optional[str] = Field(default=None, max_length=500)
    contact_phone: Optional[str] = None
    time_slot_start: Optional[str] = Field(default=None, pattern=r'^\d{2}:\d{2}$')
    time_slot_end: Optional[str] = Field(default=None, pattern=r'^\d{2}:\d{2}$')


class ReservationReview(BaseModel):
    status: Literal["confirmed", "cancelled"]
    admin_notes: Optional[str] = None


# ========== Maintenance ==========

class MaintenanceCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=1000)
    category: MaintenanceCategory
    priority: MaintenancePriority = MaintenancePriority.medium


class MaintenanceAssign(BaseModel):
    worker_id: int = Field(gt=0)
    admin_notes: Optional[str] = None


class WorkerStatusUpdate(BaseModel):
    status: Literal["In Progress", "Completed"]
    work_notes: Optional[str] = None
    estimated_completion_time: Optional[str] = None


class AdminStatusUpdate(BaseModel):
    status: MaintenanceStatus
    admin_notes: Optional[str] = None


class MaintenanceFeedback(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)


# ========== Leave ==========

class LeaveCreate(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(min_length=1, max_length=500)

    @model_validator(mode='after')
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must be after start date")
        return self


class LeaveReview(BaseModel):
    status: Literal["approved", "rejected"]
    review_notes: Optional[str] = None
