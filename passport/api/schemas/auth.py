from typing import Optional

from pydantic import BaseModel


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
    expires_in: int  # seconds


class ActorResponse(BaseModel):
    user_id: int
    username: Optional[str] = None
    role: str
    role_level: int
