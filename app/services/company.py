from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional
import ipaddress

from app.core.config import settings
from app.models.company import Company, Group


def is_valid_ip_address(ip: str) -> bool:
    try:
        ipaddress.ip_address(ip)
    except ValueError:
        return False
    return True


def validate_allowed_ips(allowed_ips: Optional[List[str]]) -> List[str]:
    ips = [ip.strip() for ip in (allowed_ips or []) if ip and ip.strip()]
    if len(ips) > settings.MAX_ALLOWED_IPS:
        raise ValueError(f"Maximum of {settings.MAX_ALLOWED_IPS} IP addresses allowed")
    for ip in ips:
        if not is_valid_ip_address(ip):
            raise ValueError(f"Invalid IP address format: {ip}")
    return ips


async def get_company_by_name(db: Session, name: str) -> Optional[Company]:
    """Case-insensitive lookup by company name."""
    if not name:
        return None
    return db.query(Company).filter(func.lower(Company.name) == name.strip().lower()).first()


async def create_company(
    db: Session,
    name: str,
    allowed_ips: Optional[List[str]] = None,
    group: Optional[str] = None,
) -> Company:
    if not name or not name.strip():
        raise ValueError("Company name is required")

    ips = validate_allowed_ips(allowed_ips)

    if await get_company_by_name(db, name):
        raise ValueError(f"A company with the name '{name}' already exists")

    company = Company(name=name.strip(), allowed_ips=ips, group=group)
    db.add(company)

    if group and not db.get(Group, group):
        db.add(Group(name=group))

    db.commit()
    db.refresh(company)
    return company
