from fastapi import HTTPException


class ValidationFailed(HTTPException):
    def __init__(self, detail: str = "Validation failed"):
        super().__init__(status_code=400, detail=detail)


class Unauthorized(HTTPException):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


class AccessDenied(HTTPException):
    def __init__(self, detail: str = "Access denied"):
        super().__init__(status_code=403, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=404, detail=detail)


class Conflict(HTTPException):
    def __init__(self, detail: str = "Conflict", status_code: int = 409):
        super().__init__(status_code=status_code, detail=detail)


class QRCodeAlreadyUsed(Conflict):
    """A pickup QR code that was already scanned. Mobile clients expect a 400 here."""

    def __init__(self):
        super().__init__(detail="QR code already used", status_code=400)
