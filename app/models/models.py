from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Boolean, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from app.core.database import Base

PENDING = "Pending"
ROLE_ADMIN = "Admin"
ROLE_USER = "User"


class Publisher(Base):
    __tablename__ = "publishers"
    id = Column(Integer, primary_key=True, index=True)
    publisher_name = Column(String, unique=True, nullable=False, index=True)


class Author(Base):
    __tablename__ = "authors"
    id = Column(Integer, primary_key=True, index=True)
    author_name = Column(String, unique=True, nullable=False, index=True)
    # deleting an author drops its links, never the books
    book_links = relationship("BookAuthor", back_populates="author", cascade="all")


class Book(Base):
    __tablename__ = "books"
    id = Column(Integer, primary_key=True, index=True)
    book_name = Column(String, unique=True, nullable=False, index=True)
    genre = Column(String, nullable=False, index=True)
    publisher_id = Column(Integer, ForeignKey("publishers.id"), nullable=False, index=True)
    publish_date = Column(Date, nullable=True)
    language = Column(String, nullable=True)
    edition = Column(String, nullable=True)
    book_cost = Column(Float, default=0)
    number_of_pages = Column(Integer, default=0)
    description = Column(Text, nullable=True)
    actual_stocks = Column(Integer, default=0)
    ratings = Column(Float, default=0)

    publisher = relationship("Publisher")
    book_authors = relationship("BookAuthor", back_populates="book", cascade="all, delete-orphan",
                                order_by="BookAuthor.position")
    book_images = relationship("BookImage", back_populates="book", cascade="all, delete-orphan",
                               order_by="BookImage.id")


class BookAuthor(Base):
    __tablename__ = "book_authors"
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), primary_key=True)
    author_id = Column(Integer, ForeignKey("authors.id", ondelete="CASCADE"), primary_key=True)
    position = Column(Integer, default=0)
    book = relationship("Book", back_populates="book_authors")
    author = relationship("Author", back_populates="book_links")


class BookImage(Base):
    __tablename__ = "book_images"
    id = Column(Integer, primary_key=True, index=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), index=True, nullable=False)
    image_url = Column(String, nullable=False)
    book = relationship("Book", back_populates="book_images")


class IssueBook(Base):
    __tablename__ = "issue_books"
    id = Column(Integer, primary_key=True, index=True)
    # not a foreign key: existence is only checked when the request is made
    book_id = Column(Integer, nullable=False, index=True)
    user_email = Column(String, nullable=False, default="", index=True)
    days = Column(Integer, nullable=False, default=0)
    issued_date = Column(DateTime, default=datetime.now)
    due_date = Column(DateTime, default=datetime.now)
    status = Column(String, nullable=False, default=PENDING, index=True)


class Role(Base):
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)


class UserRole(Base):
    __tablename__ = "user_roles"
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    role = relationship("Role")


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    user_name = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    middle_name = Column(String, nullable=True)
    last_name = Column(String, nullable=False)
    phone_number = Column(String, nullable=True)
    dob = Column(Date, nullable=True)
    gender = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    pincode = Column(String, nullable=True)
    full_address = Column(String, nullable=True)
    profile_picture = Column(String, default="Not Uploaded")
    two_factor_enabled = Column(Boolean, default=False)
    email_confirmed = Column(Boolean, default=False)
    otp_hash = Column(String, nullable=True)
    otp_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    user_roles = relationship("UserRole", cascade="all, delete-orphan")

    @property
    def roles(self):
        return [ur.role.name for ur in self.user_roles]


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"
    jti = Column(String, primary_key=True)
    revoked_at = Column(DateTime, default=datetime.now)
    # the token's exp claim; rows past it are pruned on logout
    expires_at = Column(DateTime, nullable=True, index=True)
