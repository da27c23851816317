from pydantic import BaseModel, EmailStr
from typing import Optional


class ParentAccountCreate(BaseModel):
    parent_email: EmailStr
    parent_phone: Optional[str] = None
    teen_name: Optional[str] = None


class ParentAccountRead(BaseModel):
    success: bool = True
    parent_id: str
    created: bool = False
