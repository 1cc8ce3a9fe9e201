from pydantic import BaseModel
from typing import Any, Dict, List

class AdminLogin(BaseModel):
    email: str
    password: str

class AdminToken(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class EmailHealthRead(BaseModel):
    provider: str
    status: str
    mode: str
    can_send: bool
    checks: Dict[str, Any]
    issues: List[str]
