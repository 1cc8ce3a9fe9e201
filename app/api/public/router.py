from fastapi import APIRouter
from app.api.public import inquiries

router = APIRouter()
router.include_router(inquiries.router, prefix="/inquiries", tags=["Public"])
