from pydantic import BaseModel
from typing import Optional

# Fields are optional so missing values come back as 400s with the
# endpoint's own error body instead of FastAPI's 422.

class SendOTPRequest(BaseModel):
    email: Optional[str] = None
    # Sent by the old relay-server client; the server always issues its own code
    otp: Optional[str] = None

class VerifyOTPRequest(BaseModel):
    email: Optional[str] = None
    otp: Optional[str] = None
