from sqlalchemy import Column, Integer, String

from .base import TenantBase, TimestampMixin


class SchoolUser(TimestampMixin, TenantBase):
    """Staff, student and parent accounts stored inside a school's database"""
    __tablename__ = "school_users"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=False, unique=True, index=True)  # e.g. NPS-T-0001
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, index=True)
    class_name = Column(String(50), nullable=True)
    section = Column(String(20), nullable=True)
    roll_number = Column(String(50), nullable=True)
    mobile = Column(String(20), nullable=True)

    def __repr__(self):
        return f"<SchoolUser(user_id={self.user_id}, role={self.role})>"
