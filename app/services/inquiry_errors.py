from __future__ import annotations


class InquiryError(Exception):
    pass


class InquiryValidationError(InquiryError):
    pass


class InquiryNotFoundError(InquiryError):
    def __init__(self, inquiry_id: int):
        super().__init__(f"Inquiry {inquiry_id} not found")
        self.inquiry_id = inquiry_id


class InquiryNotSecretError(InquiryError):
    def __init__(self, inquiry_id: int):
        super().__init__(f"Inquiry {inquiry_id} is not a secret post")
        self.inquiry_id = inquiry_id
