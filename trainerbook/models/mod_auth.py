from enum import Enum
from pydantic import BaseModel, EmailStr
from typing import Optional

class UserRole(str, Enum):
    CLIENT = "client"
    TRAINER = "trainer"

class AuthUser(BaseModel):
    id: str
    email: EmailStr
    name: str
    role: UserRole = UserRole.CLIENT

class TokenData(BaseModel):
    id: str
    email: EmailStr
    name: str
    role: UserRole = UserRole.CLIENT
    exp: Optional[float] = None
