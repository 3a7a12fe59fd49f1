import os
import uuid
from types import SimpleNamespace

# Point the app at a throwaway database before anything imports it
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("POSTGRES_URL", None)
os.environ.pop("SUPABASE_HOST", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.config import settings
from app.db.base import Base, get_db
from app.services import auth as auth_service


class FakeProviderError(Exception):
    """Mimics the shape of Supabase Auth API errors (code + status)."""

    def __init__(self, message, code=None, status=400):
        super().__init__(message)
        self.code = code
        self.status = status


class FakeIdentityProvider:
    def __init__(self):
        self.accounts = {}
        self.active_tokens = {}
        self.signed_out = []
        self.magic_links = []
        self.link_hashes = {}
        self.password_resets = []
        self.next_error = None

    def add_account(self, email, password="password123", user_id=None):
        account = {"id": user_id or str(uuid.uuid4()), "email": email, "password": password}
        self.accounts[email] = account
        return account

    def _raise_pending(self):
        if self.next_error:
            error, self.next_error = self.next_error, None
            raise error

    def _open_session(self, account):
        token = f"token-{uuid.uuid4()}"
        self.active_tokens[token] = account
        return SimpleNamespace(
            user=SimpleNamespace(id=account["id"], email=account["email"], user_metadata={}),
            session=SimpleNamespace(access_token=token, refresh_token="refresh-" + token),
        )

    async def authenticate(self, email, password):
        self._raise_pending()
        account = self.accounts.get(email)
        if not account or account["password"] != password:
            raise FakeProviderError("Invalid login credentials", code="invalid_credentials")
        return self._open_session(account)

    async def create_user(self, email, password):
        self._raise_pending()
        if email in self.accounts:
            raise FakeProviderError("User already registered", code="user_already_exists", status=422)
        if len(password) < 6:
            raise FakeProviderError("Password too short", code="weak_password", status=422)
        account = self.add_account(email, password)
        return SimpleNamespace(user=SimpleNamespace(id=account["id"], email=email), session=None)

    async def send_magic_link(self, email, redirect_to):
        self._raise_pending()
        self.magic_links.append((email, redirect_to))

    def issue_link_hash(self, email):
        token_hash = uuid.uuid4().hex
        self.link_hashes[token_hash] = email
        return token_hash

    async def verify_magic_link(self, token_hash, link_type="magiclink"):
        self._raise_pending()
        email = self.link_hashes.pop(token_hash, None)
        if not email:
            raise FakeProviderError("Email link is invalid or has expired", code="otp_expired", status=403)
        return self._open_session(self.accounts[email])

    async def sign_out(self, access_token):
        self._raise_pending()
        self.signed_out.append(access_token)
        self.active_tokens.pop(access_token, None)

    async def get_user(self, access_token):
        account = self.active_tokens.get(access_token)
        if not account:
            return None
        return SimpleNamespace(id=account["id"], email=account["email"])

    async def reset_password(self, email, redirect_to):
        self._raise_pending()
        self.password_resets.append((email, redirect_to))


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.error = None

    async def send_otp_email(self, email, otp):
        if self.error:
            raise self.error
        self.sent.append((email, otp))

    def last_code(self, email):
        return [code for to, code in self.sent if to == email][-1]


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def provider(monkeypatch):
    fake = FakeIdentityProvider()
    monkeypatch.setattr(auth_service, "authenticate_supabase_user", fake.authenticate)
    monkeypatch.setattr(auth_service, "create_supabase_user", fake.create_user)
    monkeypatch.setattr(auth_service, "send_magic_link_supabase", fake.send_magic_link)
    monkeypatch.setattr(auth_service, "verify_magic_link_supabase", fake.verify_magic_link)
    monkeypatch.setattr(auth_service, "sign_out_supabase_user", fake.sign_out)
    monkeypatch.setattr(auth_service, "get_supabase_user", fake.get_user)
    monkeypatch.setattr(auth_service, "reset_password_supabase", fake.reset_password)
    return fake


@pytest.fixture
def mailer(monkeypatch):
    fake = FakeMailer()
    monkeypatch.setattr(auth_service, "send_otp_email", fake.send_otp_email)
    return fake


@pytest.fixture
def client(db_session, provider, mailer):
    from main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def no_retry_delay(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_RETRY_DELAY_SECONDS", 0)


@pytest.fixture
def make_profile(db_session):
    from app.models.user import User

    def _make(account, role="Employee", company="Acme", name="Test User"):
        user = User(id=account["id"], email=account["email"], name=name, role=role, company=company)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_company(db_session):
    from app.models.company import Company

    def _make(name="Acme", allowed_ips=None, group=None):
        company = Company(name=name, allowed_ips=allowed_ips or [], group=group)
        db_session.add(company)
        db_session.commit()
        return company

    return _make
