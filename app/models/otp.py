from sqlalchemy import Column, Integer, String, DateTime
import uuid

from app.db.base import Base
from app.utils.dates import utcnow

class OTP(Base):
    __tablename__ = "otps"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, index=True, nullable=False)
    code = Column(String(6), nullable=False)
    # Failed guesses against this subject since the code was issued
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    def is_expired(self, now=None) -> bool:
        return (now or utcnow()) > self.expires_at
