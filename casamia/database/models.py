import enum
import math
from datetime import datetime, date
from typing import Optional, List
from sqlalchemy import String, Boolean, ForeignKey, Integer, Numeric, Date, DateTime, JSON, Text, Index, event
from sqlalchemy.orm import Mapped, mapped_column, relationship
from casamia.database.core import Base, utcnow

# Money columns come back as floats so arithmetic never mixes Decimal and float
Money = Numeric(12, 2, asdecimal=False)

# Enums
class Role(str, enum.Enum):
    admin = "admin"
    tenant = "tenant"
    worker = "worker"

class LeaseStatus(str, enum.Enum):
    upcoming = "upcoming"
    active = "active"
    expired = "expired"
    terminated = "terminated"

class ApartmentType(str, enum.Enum):
    one_bhk = "1BHK"
    two_bhk = "2BHK"
    three_bhk = "3BHK"
    penthouse = "Penthouse"

class BeverageCategory(str, enum.Enum):
    alcoholic = "Alcoholic"
    non_alcoholic = "Non-Alcoholic"

class CartStatus(str, enum.Enum):
    active = "active"
    ordered = "ordered"
    billed = "billed"

class ConsumptionStatus(str, enum.Enum):
    consumed = "consumed"
    billed = "billed"

class ConsumptionPaymentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    cancelled = "cancelled"

class PaymentMethod(str, enum.Enum):
    cash = "cash"
    card = "card"
    online = "online"
    account = "account"

class UtilityType(str, enum.Enum):
    electricity = "electricity"
    water = "water"
    gas = "gas"
    internet = "internet"
    maintenance = "maintenance"
    floor_heating = "floor_heating"
    car_charging = "car_charging"

class BillStatus(str, enum.Enum):
    draft = "draft"
    generated = "generated"
    under_review = "under_review"
    approved = "approved"
    sent = "sent"
    paid = "paid"
    overdue = "overdue"
    cancelled = "cancelled"

class TimeSlot(str, enum.Enum):
    morning = "morning"
    afternoon = "afternoon"
    evening = "evening"
    night = "night"
    full_day = "full-day"

class ReservationStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"

class MaintenanceCategory(str, enum.Enum):
    plumbing = "Plumbing"
    electrical = "Electrical"
    hvac = "HVAC"
    appliances = "Appliances"
    cleaning = "Cleaning"
    painting = "Painting"
    carpentry = "Carpentry"
    other = "Other"

class MaintenancePriority(str, enum.Enum):
    low = "Low"
    medium = "Medium"
    high = "High"
    emergency = "Emergency"

class MaintenanceStatus(str, enum.Enum):
    pending = "Pending"
    assigned = "Assigned"
    in_progress = "In Progress"
    completed = "Completed"
    cancelled = "Cancelled"

class LeaveType(str, enum.Enum):
    sick = "Sick Leave"
    vacation = "Vacation"
    personal = "Personal Leave"
    emergency = "Emergency Leave"
    parental = "Maternity/Paternity Leave"
    other = "Other"

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# Users
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String)
    role: Mapped[Role] = mapped_column(String, default=Role.tenant.value, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    deleted_by: Mapped[Optional[int]] = mapped_column(Integer)
    is_historical_record: Mapped[bool] = mapped_column(Boolean, default=False)

    # department, position, hire_date, salary
    worker_info: Mapped[Optional[dict]] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    tenant_info: Mapped[Optional["TenantInfo"]] = relationship(
        back_populates="user", uselist=False, lazy="selectin", cascade="all, delete-orphan"
    )

    def to_dict(self, exclude: tuple = ()) -> dict:
        data = super().to_dict(exclude=("password_hash",) + tuple(exclude))
        if self.role == Role.tenant.value and self.tenant_info is not None:
            data["tenant_info"] = self.tenant_info.to_dict(exclude=("user_id",))
        return data


class TenantInfo(Base):
    __tablename__ = "tenant_info"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    apartment_id: Mapped[Optional[int]] = mapped_column(ForeignKey("apartments.id", ondelete="SET NULL"), index=True)
    room_number: Mapped[Optional[str]] = mapped_column(String)

    lease_start_date: Mapped[Optional[date]] = mapped_column(Date)
    lease_end_date: Mapped[Optional[date]] = mapped_column(Date)
    lease_status: Mapped[LeaseStatus] = mapped_column(String, default=LeaseStatus.active.value)

    monthly_rent: Mapped[float] = mapped_column(Money, default=0)
    security_deposit: Mapped[float] = mapped_column(Money, default=0)
    emergency_contact: Mapped[Optional[dict]] = mapped_column(JSON)
    lease_history: Mapped[list] = mapped_column(JSON, default=list)

    total_days: Mapped[int] = mapped_column(Integer, default=0)
    total_months: Mapped[int] = mapped_column(Integer, default=0)
    total_years: Mapped[int] = mapped_column(Integer, default=0)

    user: Mapped["User"] = relationship(back_populates="tenant_info")

    def refresh_stay_duration(self):
        """days = ceil(end - start), months = ceil(days / 30), years = floor(months / 12)"""
        if not self.lease_start_date or not self.lease_end_date:
            return
        days = max(0, math.ceil((self.lease_end_date - self.lease_start_date).days))
        months = math.ceil(days / 30)
        self.total_days = days
        self.total_months = months
        self.total_years = months // 12

    def refresh_lease_status(self, today: Optional[date] = None) -> str:
        """Derive lease_status from the lease window. A terminated lease stays terminated."""
        if self.lease_status == LeaseStatus.terminated.value:
            return self.lease_status
        if not self.lease_start_date or not self.lease_end_date:
            return self.lease_status

        today = today or date.today()
        if today < self.lease_start_date:
            self.lease_status = LeaseStatus.upcoming.value
        elif today > self.lease_end_date:
            self.lease_status = LeaseStatus.expired.value
        else:
            self.lease_status = LeaseStatus.active.value
        return self.lease_status


@event.listens_for(TenantInfo, "before_insert")
@event.listens_for(TenantInfo, "before_update")
def _recompute_lease_fields(mapper, connection, target: TenantInfo):
    # Runs on every save of the row
    target.refresh_stay_duration()
    target.refresh_lease_status()


# Apartments
class Apartment(Base):
    __tablename__ = "apartments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    unit_number: Mapped[str] = mapped_column(String, unique=True, index=True)
    building: Mapped[str] = mapped_column(String)
    floor: Mapped[int] = mapped_column(Integer)
    apartment_type: Mapped[ApartmentType] = mapped_column(String)
    bedrooms: Mapped[int] = mapped_column(Integer, default=1)
    bathrooms: Mapped[int] = mapped_column(Integer, default=1)
    area: Mapped[Optional[float]] = mapped_column(Numeric(10, 2, asdecimal=False))
    rent: Mapped[float] = mapped_column(Money)
    deposit: Mapped[float] = mapped_column(Money, default=0)

    # is_occupied is True exactly when current_tenant_id is set
    is_occupied: Mapped[bool] = mapped_column(Boolean, default=False)
    current_tenant_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    occupied_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_vacated_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    amenities: Mapped[list] = mapped_column(JSON, default=list)
    description: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# Beverages
class Beverage(Base):
    __tablename__ = "beverages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, unique=True)
    category: Mapped[BeverageCategory] = mapped_column(String)
    price: Mapped[float] = mapped_column(Money)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class BeverageCart(Base):
    __tablename__ = "beverage_carts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    status: Mapped[CartStatus] = mapped_column(String, default=CartStatus.active.value)
    total_amount: Mapped[float] = mapped_column(Money, default=0)

    ordered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    billed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    billing_month: Mapped[Optional[int]] = mapped_column(Integer)
    billing_year: Mapped[Optional[int]] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    items: Mapped[List["BeverageCartItem"]] = relationship(
        back_populates="cart", lazy="selectin", cascade="all, delete-orphan",
        order_by="BeverageCartItem.id"
    )

    __table_args__ = (
        Index('idx_cart_tenant_status', 'tenant_id', 'status'),
    )

    def recalculate_total(self) -> float:
        self.total_amount = round(sum(float(item.total_price) for item in self.items), 2)
        return self.total_amount

    def to_dict(self, exclude: tuple = ()) -> dict:
        data = super().to_dict(exclude=exclude)
        data["items"] = [item.to_dict() for item in self.items]
        return data


class BeverageCartItem(Base):
    __tablename__ = "beverage_cart_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    cart_id: Mapped[int] = mapped_column(ForeignKey("beverage_carts.id", ondelete="CASCADE"), index=True)
    beverage_id: Mapped[int] = mapped_column(ForeignKey("beverages.id"))
    beverage_name: Mapped[str] = mapped_column(String)
    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[float] = mapped_column(Money)  # Fixed when the line is added
    total_price: Mapped[float] = mapped_column(Money)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    cart: Mapped["BeverageCart"] = relationship(back_populates="items")


class BeverageConsumption(Base):
    __tablename__ = "beverage_consumption"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    beverage_id: Mapped[int] = mapped_column(ForeignKey("beverages.id"))
    beverage_name: Mapped[str] = mapped_column(String)
    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[float] = mapped_column(Money)
    total_amount: Mapped[float] = mapped_column(Money)
    consumption_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    # Snapshot of where the tenant lived at consumption time
    room_number: Mapped[Optional[str]] = mapped_column(String)
    apartment_id: Mapped[Optional[int]] = mapped_column(ForeignKey("apartments.id", ondelete="SET NULL"))
    reservation_id: Mapped[Optional[int]] = mapped_column(ForeignKey("rooftop_reservations.id", ondelete="SET NULL"))

    status: Mapped[ConsumptionStatus] = mapped_column(String, default=ConsumptionStatus.consumed.value)
    payment_status: Mapped[ConsumptionPaymentStatus] = mapped_column(String, default=ConsumptionPaymentStatus.pending.value)
    payment_method: Mapped[PaymentMethod] = mapped_column(String, default=PaymentMethod.account.value)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # included_in_bill is True exactly when utility_bill_id is set
    included_in_bill: Mapped[bool] = mapped_column(Boolean, default=False)
    utility_bill_id: Mapped[Optional[int]] = mapped_column(ForeignKey("utility_bills.id", ondelete="SET NULL"), index=True)
    billing_period_start: Mapped[Optional[date]] = mapped_column(Date)
    billing_period_end: Mapped[Optional[date]] = mapped_column(Date)
    billed_in_month: Mapped[Optional[int]] = mapped_column(Integer)
    billed_in_year: Mapped[Optional[int]] = mapped_column(Integer)

    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index('idx_consumption_tenant_payment', 'tenant_id', 'payment_status'),
        Index('idx_consumption_tenant_included', 'tenant_id', 'included_in_bill'),
    )


# Utility bills
class UtilityBill(Base):
    __tablename__ = "utility_bills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    bill_number: Mapped[str] = mapped_column(String, unique=True, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    apartment_id: Mapped[int] = mapped_column(ForeignKey("apartments.id"))

    billing_period_start: Mapped[date] = mapped_column(Date)
    billing_period_end: Mapped[date] = mapped_column(Date)

    # [{utility_type, previous_reading, current_reading, consumption, rate, amount}]
    utilities: Mapped[list] = mapped_column(JSON, default=list)
    # [{description, amount}]
    additional_charges: Mapped[list] = mapped_column(JSON, default=list)
    discounts: Mapped[list] = mapped_column(JSON, default=list)
    # Snapshot of folded consumption records
    beverage_items: Mapped[list] = mapped_column(JSON, default=list)
    beverage_total: Mapped[float] = mapped_column(Money, default=0)

    subtotal: Mapped[float] = mapped_column(Money, default=0)
    tax: Mapped[float] = mapped_column(Money, default=0)
    total_amount: Mapped[float] = mapped_column(Money, default=0)
    due_date: Mapped[Optional[date]] = mapped_column(Date)

    status: Mapped[BillStatus] = mapped_column(String, default=BillStatus.draft.value)
    generated_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    reviewed_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    review_notes: Mapped[Optional[str]] = mapped_column(Text)
    approved_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    email_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    email_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(String)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_bill_tenant_status', 'tenant_id', 'status'),
        Index('idx_bill_period', 'billing_period_start', 'billing_period_end'),
    )


class BillSequence(Base):
    """Per-month bill number counter, keyed by 'YYYYMM'."""
    __tablename__ = "bill_sequences"

    period: Mapped[str] = mapped_column(String(6), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, default=0)


# Rooftop
class RooftopReservation(Base):
    __tablename__ = "rooftop_reservations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    reservation_date: Mapped[date] = mapped_column(Date, index=True)
    time_slot: Mapped[TimeSlot] = mapped_column(String)
    time_slot_start: Mapped[Optional[str]] = mapped_column(String(5))
    time_slot_end: Mapped[Optional[str]] = mapped_column(String(5))
    number_of_guests: Mapped[int] = mapped_column(Integer, default=1)
    purpose: Mapped[Optional[str]] = mapped_column(String)
    special_requests: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[ReservationStatus] = mapped_column(String, default=ReservationStatus.pending.value)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text)
    room_number: Mapped[Optional[str]] = mapped_column(String)
    contact_phone: Mapped[Optional[str]] = mapped_column(String)
    reviewed_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# Maintenance
class MaintenanceRequest(Base):
    __tablename__ = "maintenance_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    apartment_id: Mapped[int] = mapped_column(ForeignKey("apartments.id"))
    title: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(Text)
    category: Mapped[MaintenanceCategory] = mapped_column(String)
    priority: Mapped[MaintenancePriority] = mapped_column(String, default=MaintenancePriority.medium.value)
    status: Mapped[MaintenanceStatus] = mapped_column(String, default=MaintenanceStatus.pending.value, index=True)

    assigned_worker_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), index=True)
    assigned_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    started_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    estimated_completion_time: Mapped[Optional[str]] = mapped_column(String)
    actual_completion_time: Mapped[Optional[float]] = mapped_column(Numeric(8, 2, asdecimal=False))  # Hours

    work_notes: Mapped[Optional[str]] = mapped_column(Text)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text)

    # Tenant feedback once the work is completed
    rating: Mapped[Optional[int]] = mapped_column(Integer)
    feedback_comment: Mapped[Optional[str]] = mapped_column(Text)
    feedback_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# Leave
class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    worker_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    leave_type: Mapped[LeaveType] = mapped_column(String)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    total_days: Mapped[int] = mapped_column(Integer)
    reason: Mapped[str] = mapped_column(Text)
    status: Mapped[LeaveStatus] = mapped_column(String, default=LeaveStatus.pending.value, index=True)
    reviewed_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    review_notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
