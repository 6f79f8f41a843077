from pydantic import BaseModel


class HTTPException(BaseModel):
    detail: str


class BadRequest(HTTPException):
    detail: str = "Request violates a business rule"


class NotFound(HTTPException):
    detail: str = "Entity not found"


class Unauthorized(HTTPException):
    detail: str = "Could not validate credentials"


class Forbidden(HTTPException):
    detail: str = "You are not allowed to perform this action"


class Conflict(HTTPException):
    detail: str = "Entity already exists"


_400 = {"description": "Bad request", "model": BadRequest}
_401 = {"description": "Unauthorized", "model": Unauthorized}
_403 = {"description": "Forbidden", "model": Forbidden}
_404 = {"description": "Not found", "model": NotFound}
_409 = {"description": "Conflict", "model": Conflict}
