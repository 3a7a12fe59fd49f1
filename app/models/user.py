from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
import enum
import uuid

from app.db.base import Base
from app.utils.dates import utcnow


class UserRole(enum.Enum):
    OWNER = "Owner"
    EXECUTIVE = "Executive"
    EMPLOYEE = "Employee"
    ADMIN = "Admin"

    @classmethod
    def parse(cls, value) -> "UserRole":
        """
        Normalize a stored role string to its role class.

        Matching is case-insensitive and understands the French labels the
        dashboard historically wrote (PDG, Dirigeant, Employé). Anything
        unrecognised is treated as an employee, the most restricted class.
        """
        if isinstance(value, cls):
            return value
        key = (value or "").strip().lower()
        return _ROLE_ALIASES.get(key, cls.EMPLOYEE)


_ROLE_ALIASES = {
    "owner": UserRole.OWNER,
    "pdg": UserRole.OWNER,
    "executive": UserRole.EXECUTIVE,
    "dirigeant": UserRole.EXECUTIVE,
    "employee": UserRole.EMPLOYEE,
    "employé": UserRole.EMPLOYEE,
    "employe": UserRole.EMPLOYEE,
    "admin": UserRole.ADMIN,
}


class LoginStatus(enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class User(Base):
    """
    Dashboard user profile. The primary key is the identity provider's
    user id so a provider session resolves straight to its profile.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, default="User")
    role = Column(String, default=UserRole.EMPLOYEE.value, nullable=False)
    company = Column(String, default="")
    group = Column(String, nullable=True)
    last_login = Column(DateTime, nullable=True)
    last_login_ip = Column(String, default="")
    login_count_7_days = Column(Integer, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    login_history = relationship(
        "LoginHistoryEntry",
        back_populates="user",
        order_by="LoginHistoryEntry.timestamp",
        cascade="all, delete-orphan",
    )

    @property
    def role_class(self) -> UserRole:
        return UserRole.parse(self.role)


class LoginHistoryEntry(Base):
    __tablename__ = "login_history"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    timestamp = Column(DateTime, default=utcnow, index=True, nullable=False)
    ip_address = Column(String, default="unknown")
    status = Column(String, nullable=False)  # LoginStatus value
    reason = Column(Text, nullable=True)

    user = relationship("User", back_populates="login_history")
