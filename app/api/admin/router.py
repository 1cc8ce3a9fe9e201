from fastapi import APIRouter
from app.api.admin import auth, inquiries, system

router = APIRouter()
router.include_router(auth.router, prefix="/auth", tags=["AdminAuth"])
router.include_router(inquiries.router, prefix="/inquiries", tags=["AdminInquiries"])
router.include_router(system.router, prefix="/system", tags=["AdminSystem"])
