import os
import tempfile

# must be set before the app (and its settings) are imported
os.environ["LIBRARY_DB"] = "sqlite://"
os.environ["LIBRARY_MEDIA_ROOT"] = tempfile.mkdtemp(prefix="library-media-")
os.environ["LIBRARY_BCRYPT_ROUNDS"] = "4"

from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from app.core import security
from app.core.database import Base, SessionLocal, engine
from app.core.init_db import seed_roles
from app.main import app
from app.models import models
from app.services.email import EmailService, get_email_service
from app.services.media import MediaStorage, get_media_storage


class Outbox(EmailService):
    def __init__(self):
        super().__init__()
        self.messages = []

    def send(self, message):
        self.messages.append(message)

    def last_link_params(self):
        query = parse_qs(urlparse(self.messages[-1].content).query)
        return {k: v[0] for k, v in query.items()}


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_roles(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def media(tmp_path):
    return MediaStorage(tmp_path / "wwwroot")


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def client(db, media, outbox):
    app.dependency_overrides[get_media_storage] = lambda: media
    app.dependency_overrides[get_email_service] = lambda: outbox
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_user(db, email, role=models.ROLE_USER, password="secret123", confirmed=True, two_factor=False):
    role_row = db.query(models.Role).filter(models.Role.name == role).one()
    user = models.User(user_name=email, email=email, password_hash=security.hash_password(password),
                       first_name="Test", last_name="User", email_confirmed=confirmed,
                       two_factor_enabled=two_factor)
    user.user_roles.append(models.UserRole(role=role_row))
    db.add(user)
    db.commit()
    return user


def bearer(user_name, roles):
    token, _ = security.create_access_token(user_name, roles)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(db):
    make_user(db, "admin@library.test", role=models.ROLE_ADMIN)
    return bearer("admin@library.test", [models.ROLE_ADMIN])


@pytest.fixture
def user_headers(db):
    make_user(db, "reader@library.test")
    return bearer("reader@library.test", [models.ROLE_USER])


BOOKS = "/api/AdminBookController"


def add_publisher(client, headers, name="Penguin"):
    r = client.post(f"{BOOKS}/addPublisher", json={"publisher_name": name}, headers=headers)
    assert r.status_code == 200, r.text
    return next(p["id"] for p in r.json() if p["publisher_name"] == name)


def add_author(client, headers, name="Jane Doe"):
    r = client.post(f"{BOOKS}/addAuthor", json={"author_name": name}, headers=headers)
    assert r.status_code == 200, r.text
    return next(a["id"] for a in r.json() if a["author_name"] == name)


def book_form(name="Dune", genre="Science Fiction", publisher_id=1, author_ids=(1,), **extra):
    data = {"book_name": name, "genre": genre, "publisher_id": str(publisher_id),
            "author_ids": [str(a) for a in author_ids]}
    data.update({k: str(v) for k, v in extra.items()})
    return data


def image(name="cover.png", content=b"\x89PNG fake"):
    return ("images", (name, content, "image/png"))
