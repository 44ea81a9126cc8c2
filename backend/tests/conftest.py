from __future__ import annotations

import base64
import io
import os
import random
import uuid
from datetime import datetime, timedelta

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from PIL import Image
from pypdf import PdfReader, PdfWriter
from reportlab.pdfgen import canvas
from sqlmodel import Session, SQLModel, create_engine

from securesign.api.deps import get_db
from securesign.core.config import settings
from securesign.db import session as db_session_module
from securesign.db.session import get_session
from securesign.main import app
from securesign.models.document import Document
from securesign.models.invitation import Invitation, InvitationRole, InvitationStatus
from securesign.models.user import User
from securesign.services.storage import ORIGINALS_ROOT, build_blob_name, get_storage
from securesign.utils.security import get_password_hash, hash_token


@pytest.fixture()
def db_engine(tmp_path):
    test_database_url = os.getenv("TEST_DATABASE_URL")
    if not test_database_url:
        db_path = tmp_path / f"test_{uuid.uuid4().hex}.db"
        test_database_url = f"sqlite:///{db_path}"

    engine = create_engine(test_database_url, connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(bind=engine)

    original_engine = db_session_module.engine
    db_session_module.engine = engine

    def override_dependency():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_dependency
    app.dependency_overrides[get_db] = override_dependency

    yield engine

    app.dependency_overrides.pop(get_session, None)
    app.dependency_overrides.pop(get_db, None)
    db_session_module.engine = original_engine
    engine.dispose()


@pytest.fixture()
def storage_env(monkeypatch, tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir(exist_ok=True)
    monkeypatch.setenv("SECURESIGN_STORAGE", str(storage_dir))
    yield storage_dir


@pytest.fixture()
def client(db_engine, storage_env) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db_session(db_engine, storage_env) -> Session:
    with Session(db_engine) as session:
        yield session


def make_pdf(pages: int = 1, size: tuple[float, float] = (600, 750), rotate: int = 0) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=size)
    for index in range(pages):
        pdf.drawString(72, size[1] - 72, f"Page {index + 1}")
        pdf.showPage()
    pdf.save()
    if not rotate:
        return buffer.getvalue()

    reader = PdfReader(io.BytesIO(buffer.getvalue()))
    writer = PdfWriter()
    for page in reader.pages:
        page.rotate(rotate)
        writer.add_page(page)
    output = io.BytesIO()
    writer.write(output)
    return output.getvalue()


def make_signature_data_uri(fmt: str = "PNG", seed: int = 7, size: tuple[int, int] = (60, 24)) -> str:
    """Noisy image so the encoded payload is always well above the placeholder threshold."""
    rng = random.Random(seed)
    image = Image.new("RGB", size)
    image.putdata([(rng.randrange(256), rng.randrange(256), rng.randrange(256)) for _ in range(size[0] * size[1])])
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    mime = "image/png" if fmt == "PNG" else "image/jpeg"
    return f"data:{mime};base64,{base64.b64encode(buffer.getvalue()).decode('ascii')}"


def create_user(session: Session, email: str | None = None, full_name: str = "Owner Test") -> User:
    user = User(
        email=email or f"owner_{uuid.uuid4().hex[:8]}@example.com",
        full_name=full_name,
        password_hash=get_password_hash("secret-password"),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def create_document(session: Session, owner: User, pdf_bytes: bytes | None = None, filename: str = "contract.pdf") -> Document:
    blob_ref = get_storage().save_bytes(
        root=ORIGINALS_ROOT,
        name=build_blob_name(filename),
        data=pdf_bytes if pdf_bytes is not None else make_pdf(),
    )
    document = Document(owner_id=owner.id, filename=filename, original_blob_ref=blob_ref)
    session.add(document)
    session.commit()
    session.refresh(document)
    return document


def create_invitation(
    session: Session,
    document: Document,
    owner: User,
    *,
    email: str = "guest@example.com",
    name: str = "Guest",
    role: InvitationRole = InvitationRole.SIGNER,
    status: InvitationStatus = InvitationStatus.PENDING,
    expires_in: timedelta = timedelta(days=5),
) -> tuple[Invitation, str]:
    raw_token = uuid.uuid4().hex
    invitation = Invitation(
        document_id=document.id,
        sender_id=owner.id,
        name=name,
        email=email,
        role=role,
        token_hash=hash_token(raw_token),
        status=status,
        expires_at=datetime.utcnow() + expires_in,
    )
    session.add(invitation)
    session.commit()
    session.refresh(invitation)
    return invitation, raw_token


def register_and_login(client: TestClient, email: str, password: str = "secret-password") -> tuple[dict[str, str], str]:
    unique_email = f"{uuid.uuid4().hex[:8]}_{email}"
    register_response = client.post(
        f"{settings.api_prefix}/auth/register",
        json={"full_name": "Owner Test", "email": unique_email, "password": password},
    )
    assert register_response.status_code == status.HTTP_201_CREATED, register_response.json()

    login_response = client.post(
        f"{settings.api_prefix}/auth/login",
        json={"email": unique_email, "password": password},
    )
    assert login_response.status_code == status.HTTP_200_OK, login_response.json()
    return login_response.json(), unique_email


def auth_headers(token: dict[str, str]) -> dict[str, str]:
    return {"Authorization": f"Bearer {token['access_token']}"}


def upload_pdf(client: TestClient, token: dict[str, str], pdf_bytes: bytes | None = None, filename: str = "contract.pdf") -> dict:
    response = client.post(
        f"{settings.api_prefix}/docs/upload",
        headers=auth_headers(token),
        files={"file": (filename, pdf_bytes or make_pdf(), "application/pdf")},
    )
    assert response.status_code == status.HTTP_201_CREATED, response.json()
    return response.json()
