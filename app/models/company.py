from sqlalchemy import Column, String, DateTime, JSON
import uuid

from app.db.base import Base
from app.utils.dates import utcnow

class Company(Base):
    __tablename__ = "companies"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, unique=True, index=True, nullable=False)
    allowed_ips = Column(JSON, nullable=False, default=list)
    group = Column(String, nullable=True)
    logo_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Group(Base):
    __tablename__ = "groups"

    name = Column(String, primary_key=True)
    logo_url = Column(String, nullable=True)
