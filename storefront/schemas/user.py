# storefront/schemas/user.py
from pydantic import BaseModel, EmailStr
from typing import Optional

# Shared properties for user models
class UserBase(BaseModel):
    email: EmailStr

# Schema for login credentials
class UserLogin(UserBase):
    password: str

# Schema for registration; the role is never taken from the client
class UserCreate(UserBase):
    password: str
    first_name: str
    last_name: str
    username: Optional[str] = None

# Output schema for user profile details
class UserResponse(UserBase):
    id: int
    role: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    class Config:
        from_attributes = True

# Schema for the login response
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    is_admin: bool = False
    user: Optional[UserResponse] = None

# Schema for administrative role updates
class RoleUpdate(BaseModel):
    role: str
