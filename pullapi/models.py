from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime, Date, Time, Text, ForeignKey, Numeric, JSON, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pullapi.database import Base

# SQLite only autoincrements INTEGER primary keys
BigIntegerPK = BigInteger().with_variant(Integer, "sqlite")

# ================================
# Organizations & Staff
# ================================
class Organization(Base):
    __tablename__ = "organizations"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    venues = relationship("Venue", back_populates="organization")
    workers = relationship("OrganizationWorker", back_populates="organization")

class Role(Base):
    __tablename__ = "roles"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    type = Column(String(100), nullable=False, unique=True)

    # Relationships
    workers = relationship("OrganizationWorker", back_populates="role")

class OrganizationWorker(Base):
    __tablename__ = "organization_workers"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    organization_id = Column(BigInteger, ForeignKey("organizations.id"), nullable=False)
    venue_id = Column(BigInteger, ForeignKey("venues.id"), nullable=False)
    role_id = Column(BigInteger, ForeignKey("roles.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    deleted_at = Column(DateTime(timezone=True))

    # Relationships
    organization = relationship("Organization", back_populates="workers")
    venue = relationship("Venue")
    role = relationship("Role", back_populates="workers")

# ================================
# Venues & Events
# ================================
class Venue(Base):
    __tablename__ = "venues"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    organization_id = Column(BigInteger, ForeignKey("organizations.id"), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    image = Column(String(500))
    email = Column(String(255))
    capacity = Column(Integer)
    open_time = Column(Time)
    close_time = Column(Time)
    location = Column(String(500))
    latitude = Column(Numeric(10, 6))
    longitude = Column(Numeric(10, 6))
    description = Column(Text)
    reservation_types = Column(JSON)
    days = Column(JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    organization = relationship("Organization", back_populates="venues")
    events = relationship("Event", back_populates="venue")
    reservations = relationship("Reservation", back_populates="venue")

class Event(Base):
    __tablename__ = "events"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    venue_id = Column(BigInteger, ForeignKey("venues.id"), nullable=False, index=True)
    organization_id = Column(BigInteger, ForeignKey("organizations.id"), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    image = Column(String(500))
    event_date = Column(Date, nullable=False)
    start_time = Column(Time)
    end_time = Column(Time)
    ticket_limit = Column(Integer)
    min_age = Column(Integer)
    dress_code = Column(String(255))
    access_type = Column(String(50), default="public")
    custom_location = Column(String(500))
    requirements = Column(JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    venue = relationship("Venue", back_populates="events")
    ticket_types = relationship("TicketType", back_populates="event")
    tickets = relationship("Ticket", back_populates="event")

class TicketType(Base):
    __tablename__ = "ticket_types"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    event_id = Column(BigInteger, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    initial_quantity = Column(Integer, nullable=False, default=0)
    available_quantity = Column(Integer, nullable=False, default=0)
    benefits = Column(JSON)
    expenses = Column(Numeric(10, 2), default=0)

    __table_args__ = (
        CheckConstraint("available_quantity >= 0", name="check_available_quantity_non_negative"),
    )

    # Relationships
    event = relationship("Event", back_populates="ticket_types")
    tickets = relationship("Ticket", back_populates="ticket_type")

# ================================
# Identity
# ================================
class PublicUser(Base):
    __tablename__ = "public_users"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    dpi_hashed = Column(String(64), unique=True, nullable=False, index=True)
    dpi = Column(String(255), nullable=False)  # codec-encrypted national ID
    name = Column(String(255), nullable=False)
    surname = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(20))
    birth_date = Column(Date)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

# ================================
# Orders & Tickets
# ================================
class Order(Base):
    __tablename__ = "orders"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    event_id = Column(BigInteger, ForeignKey("events.id"), nullable=False)
    ticket_type_id = Column(BigInteger, ForeignKey("ticket_types.id"), nullable=False)
    user_id = Column(BigInteger, ForeignKey("public_users.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    total = Column(Numeric(12, 2), nullable=False)
    status = Column(String(50), nullable=False, default="paid")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    event = relationship("Event")
    ticket_type = relationship("TicketType")
    user = relationship("PublicUser")
    tickets = relationship("Ticket", back_populates="order", cascade="all, delete-orphan")

class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=False, index=True)
    event_id = Column(BigInteger, ForeignKey("events.id"), nullable=False)
    ticket_type_id = Column(BigInteger, ForeignKey("ticket_types.id"), nullable=False)
    holder_id = Column(BigInteger, ForeignKey("public_users.id"), nullable=False)
    qr_token = Column(String(255), unique=True, nullable=False, index=True)
    validated_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    order = relationship("Order", back_populates="tickets")
    event = relationship("Event", back_populates="tickets")
    ticket_type = relationship("TicketType", back_populates="tickets")
    holder = relationship("PublicUser")

# ================================
# Reservations
# ================================
class ReservationStatus(Base):
    __tablename__ = "reservation_statuses"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)

class GuestStatus(Base):
    __tablename__ = "guest_statuses"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)

class ReservationType(Base):
    __tablename__ = "reservation_types"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    name = Column(String(100), nullable=False)

class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    venue_id = Column(BigInteger, ForeignKey("venues.id"), nullable=False, index=True)
    creator_id = Column(BigInteger, ForeignKey("public_users.id"), nullable=False)
    reservation_type_id = Column(BigInteger, ForeignKey("reservation_types.id"))
    status_id = Column(BigInteger, ForeignKey("reservation_statuses.id"), nullable=False)
    payment_term_id = Column(BigInteger)
    guests = Column(Integer, nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    password = Column(String(255))  # hash of the management password
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    venue = relationship("Venue", back_populates="reservations")
    creator = relationship("PublicUser")
    status = relationship("ReservationStatus")
    reservation_type = relationship("ReservationType")
    guest_rows = relationship(
        "ReservationGuest",
        back_populates="reservation",
        cascade="all, delete-orphan",
        order_by="ReservationGuest.guest_id"
    )

class ReservationGuest(Base):
    __tablename__ = "reservation_guests"

    guest_id = Column(BigIntegerPK, primary_key=True, index=True)
    reservation_id = Column(BigInteger, ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey("public_users.id"))
    temp_name = Column(String(255))
    status_id = Column(BigInteger, ForeignKey("guest_statuses.id"), nullable=False)
    is_cancelled = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True))

    # Relationships
    reservation = relationship("Reservation", back_populates="guest_rows")
    user = relationship("PublicUser")
    status = relationship("GuestStatus")
