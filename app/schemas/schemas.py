from pydantic import BaseModel, ConfigDict, Field, constr, field_validator
from datetime import date, datetime
from typing import Any, List, Literal, Optional


# -----------------------------
# Catalog
# -----------------------------
class BookIn(BaseModel):
    book_name: constr(min_length=1)
    genre: constr(min_length=1)
    publisher_id: int
    publish_date: Optional[date] = None
    language: Optional[str] = None
    edition: Optional[str] = None
    book_cost: float = Field(default=0, ge=0)
    number_of_pages: int = Field(default=0, ge=0)
    description: Optional[str] = None
    actual_stocks: int = Field(default=0, ge=0)
    ratings: float = Field(default=0, ge=0)
    author_ids: List[int] = []

    @field_validator('book_name', 'genre')
    @classmethod
    def strip_names(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v

    @field_validator('book_name')
    @classmethod
    def single_path_segment(cls, v):
        # the name doubles as the image directory name
        if v in ('.', '..') or '/' in v or '\\' in v:
            raise ValueError('must not be "." or ".." or contain path separators')
        return v


class BookOut(BaseModel):
    id: int
    book_name: str
    genre: str
    publisher_id: int
    publisher: Optional[str]
    publish_date: Optional[date]
    language: Optional[str]
    edition: Optional[str]
    book_cost: Optional[float]
    number_of_pages: Optional[int]
    description: Optional[str]
    actual_stocks: Optional[int]
    ratings: Optional[float]
    author_ids: List[int]
    authors: List[str]
    images: List[str]


class AuthorIn(BaseModel):
    author_name: constr(strip_whitespace=True, min_length=1)


class AuthorOut(BaseModel):
    id: int
    author_name: str
    model_config = ConfigDict(from_attributes=True)


class PublisherIn(BaseModel):
    publisher_name: constr(strip_whitespace=True, min_length=1)


class PublisherOut(BaseModel):
    id: int
    publisher_name: str
    model_config = ConfigDict(from_attributes=True)


# -----------------------------
# Loans
# -----------------------------
class LoanRequest(BaseModel):
    book_id: int
    days: int = Field(default=0, ge=0)


class LoanOut(BaseModel):
    id: int
    book_id: int
    user_email: str
    days: int
    issued_date: datetime
    due_date: datetime
    status: str
    model_config = ConfigDict(from_attributes=True)


class LoanPatchable(BaseModel):
    """Fields of a loan a patch document may touch."""
    book_id: int
    user_email: str
    days: int
    issued_date: datetime
    due_date: datetime
    status: str
    model_config = ConfigDict(extra='forbid')


class PatchOperation(BaseModel):
    op: Literal['add', 'remove', 'replace', 'move', 'copy', 'test']
    path: str
    value: Any = None
    from_: Optional[str] = Field(default=None, alias='from')
    model_config = ConfigDict(populate_by_name=True)


# -----------------------------
# Identity
# -----------------------------
class StatusResponse(BaseModel):
    status: str
    message: str


class LoginModel(BaseModel):
    email: constr(strip_whitespace=True, min_length=3)
    password: constr(min_length=1)


class TokenOut(BaseModel):
    token: str
    expiration: datetime


class ResetPassword(BaseModel):
    email: constr(strip_whitespace=True, min_length=3)
    token: constr(min_length=1)
    password: constr(min_length=6)
    confirm_password: str


class UserOut(BaseModel):
    id: int
    user_name: str
    email: str
    first_name: str
    last_name: str
    email_confirmed: bool
    two_factor_enabled: bool
    roles: List[str]
    model_config = ConfigDict(from_attributes=True)
