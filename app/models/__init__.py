from .user import User, UserRole, LoginHistoryEntry, LoginStatus
from .otp import OTP
from .company import Company, Group
