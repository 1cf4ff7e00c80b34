from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional


class StudentBase(BaseModel):
    name: str
    email: EmailStr
    ra: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("email", mode="after")
    @classmethod
    def _lower_email(cls, v):
        return v.lower()

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Nome obrigatório.")
        return v

class StudentCreate(StudentBase):
    pass

class StudentUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    ra: Optional[str] = None
    phone: Optional[str] = None

class Student(StudentBase):
    id: int

    model_config = {"from_attributes": True}
