from fastapi import APIRouter, Depends

from app.core.deps import get_current_admin
from app.schemas.admin import EmailHealthRead
from app.services.email_service import email_provider_health

router = APIRouter()


@router.get("/email-provider-health", response_model=EmailHealthRead)
def email_health(admin: dict = Depends(get_current_admin)):
    return EmailHealthRead(**email_provider_health())
