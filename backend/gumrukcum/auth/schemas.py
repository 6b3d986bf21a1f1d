from pydantic import BaseModel
from typing import Optional


class Identity(BaseModel):
    id: str
    email: Optional[str] = None


class UserProfile(BaseModel):
    id: str
    email: Optional[str] = None
    credits: int = 0
    subscription_tier: str = "free"


class ProfileView(BaseModel):
    id: str
    email: Optional[str] = None
    credits: int
    tier: str
    unlimited: bool
