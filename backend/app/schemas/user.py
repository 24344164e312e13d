from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.models.user import UserRole


class UserBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    role: UserRole
    department: str | None = None
    roll_no: str | None = Field(default=None, min_length=1, max_length=50)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Name cannot be empty")
        return trimmed

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("department", "roll_no")
    @classmethod
    def normalize_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None


class UserCreate(UserBase):
    password: str = Field(min_length=8, max_length=128)
    admin_secret_key: str | None = Field(default=None, max_length=200)

    @model_validator(mode="after")
    def validate_role_specific_requirements(self) -> "UserCreate":
        if self.role == UserRole.admin and not self.admin_secret_key:
            raise ValueError("admin_secret_key is required for admin registration")
        if self.role != UserRole.student:
            self.roll_no = None
        return self


class StudentCreate(UserBase):
    role: UserRole = UserRole.student
    roll_no: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=8, max_length=128)

    @model_validator(mode="after")
    def require_roll_no(self) -> "StudentCreate":
        if self.role != UserRole.student:
            raise ValueError("Only student accounts can be created here")
        if not self.roll_no:
            raise ValueError("roll_no is required for students")
        return self


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    role: UserRole | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserOut(UserBase):
    id: str

    model_config = {"from_attributes": True}


class StudentListOut(BaseModel):
    id: str
    name: str
    email: EmailStr
    department: str | None = None
    roll_no: str | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str
    user: UserOut
