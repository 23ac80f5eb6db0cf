from pydantic import BaseModel
from signboard.schemas.notice import Notice


class SetupIn(BaseModel):
    password: str = ""
    confirm_password: str = ""


class LoginIn(BaseModel):
    password: str = ""


class PasswordChangeIn(BaseModel):
    current_password: str = ""
    new_password: str = ""
    confirm_password: str = ""


class AuthStatusOut(BaseModel):
    state: str
    notices: list[Notice] = []
