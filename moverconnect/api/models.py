# File: moverconnect/api/models.py
from pydantic import BaseModel, EmailStr, Field, field_validator
from enum import Enum
from typing import Optional, Dict, Any, List, Literal

from .utils import parse_any_date

# --- 1. Enums (Must be defined first) ---

class Role(str, Enum):
    CLIENT = "client"
    MOVER = "mover"
    ADMIN = "admin"

class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

# --- 2. Auth Models ---

class ClientSignup(BaseModel):
    name: str = Field(..., min_length=1)
    number: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)

class MoverSignup(BaseModel):
    company_name: str = Field(..., min_length=1)
    service_area: str = Field(..., min_length=1)
    contact_number: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)

class SignupResponse(BaseModel):
    user_id: str
    email: str
    role: Role
    requires_email_verification: bool = True
    message: str

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str = ""
    token_type: str = "bearer"
    expires_in: int = 3600
    role: Role
    redirect_to: str
    user: Dict[str, Any]

class CurrentUser(BaseModel):
    uid: str
    email: Optional[str] = None
    role: Role
    redirect_to: str
    profile: Dict[str, Any] = Field(default_factory=dict)

# --- 3. Profiles ---

class ClientProfile(BaseModel):
    uid: str
    name: Optional[str] = None
    number: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: Optional[float] = None

class MoverProfile(BaseModel):
    uid: str
    company_name: Optional[str] = None
    name: Optional[str] = None
    service_area: Optional[str] = None
    contact_number: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = None
    credentials: List[str] = Field(default_factory=list)
    is_available: bool = False
    verification_status: VerificationStatus = VerificationStatus.PENDING
    admin_notes: Optional[str] = None
    verified_at: Optional[float] = None
    verified_by: Optional[str] = None
    notes_updated_at: Optional[float] = None
    notes_updated_by: Optional[str] = None
    created_at: Optional[float] = None

    # Derived on read from the reviews collection.
    average_rating: Optional[float] = None
    review_count: int = 0

    @property
    def display_name(self) -> str:
        return self.company_name or self.name or ""

class MoverListResponse(BaseModel):
    movers: List[MoverProfile]
    total: int

class ClientListResponse(BaseModel):
    clients: List[ClientProfile]
    total: int

class ClientProfileUpdate(BaseModel):
    name: Optional[str] = None
    number: Optional[str] = None

class MoverProfileUpdate(BaseModel):
    company_name: Optional[str] = None
    name: Optional[str] = None
    service_area: Optional[str] = None
    contact_number: Optional[str] = None

class AvailabilityUpdateRequest(BaseModel):
    is_available: bool

class CredentialUploadResponse(BaseModel):
    uploaded: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    credentials: List[str] = Field(default_factory=list)

# --- 4. Client move requests ---

class MoveRequestCreate(BaseModel):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    contact: str = Field(..., min_length=1)
    description: str = ""
    date: str = Field(..., min_length=1)

    @field_validator("date")
    @classmethod
    def _normalize_date(cls, value: str) -> str:
        dt = parse_any_date(value)
        if dt is None:
            raise ValueError("date must be a valid date")
        return dt.date().isoformat()

class MoveRequestRecord(BaseModel):
    request_id: str
    client_id: str
    name: Optional[str] = None
    address: Optional[str] = None
    contact: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    created_at: Optional[float] = None

class MoveRequestListResponse(BaseModel):
    requests: List[MoveRequestRecord]
    total: int

# --- 5. Admin ---

class VerificationUpdateRequest(BaseModel):
    status: Literal["approved", "rejected"]

class AdminNotesRequest(BaseModel):
    notes: str = ""

class AdminMoverListResponse(BaseModel):
    movers: List[MoverProfile]
    total: int
    counts: Dict[str, int] = Field(default_factory=dict)

class ActionResponse(BaseModel):
    ok: bool = True
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
