from pydantic import BaseModel, Field
from typing import Optional, List


class InquiryCreate(BaseModel):
    title: str = Field(max_length=200)
    content: str
    author: str = Field(max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    is_secret: bool = False
    password: Optional[str] = Field(default=None, max_length=128)


class InquiryUpdate(BaseModel):
    title: str = Field(max_length=200)
    content: str
    author: str = Field(max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    is_secret: Optional[bool] = None
    password: Optional[str] = Field(default=None, max_length=128)


class InquiryPasswordVerify(BaseModel):
    password: str


class InquiryPasswordVerified(BaseModel):
    verified: bool = True
    inquiry_id: int
    access_token: str


class InquiryAnswerIn(BaseModel):
    answer: str


class InquiryRead(BaseModel):
    id: int
    title: str
    content: str
    author: str
    is_secret: bool
    is_answered: bool
    requires_password: bool = False
    answer: Optional[str] = None
    answered_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class InquiryListItem(BaseModel):
    id: int
    title: str
    author: str
    is_secret: bool
    is_answered: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class InquiryPage(BaseModel):
    data: List[InquiryListItem]
    pagination: Pagination


class InquiryAnswered(BaseModel):
    inquiry: InquiryRead
    notification: str


class InquiryStatsRead(BaseModel):
    total: int
    pending: int
    secret: int
