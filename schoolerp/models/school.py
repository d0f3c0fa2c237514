from sqlalchemy import Boolean, Column, Integer, JSON, String

from .base import DirectoryBase, TimestampMixin


class School(TimestampMixin, DirectoryBase):
    """
    Directory entry for one school.
    This is the root of the tenant hierarchy: ``code`` is the tenant key and
    ``database_name`` names the school's own database.
    """
    __tablename__ = "schools"

    id = Column(Integer, primary_key=True)

    # Identity, immutable after creation
    code = Column(String(20), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    database_name = Column(String(100), nullable=False, unique=True)

    # Contact information
    principal_name = Column(String(255), nullable=True)
    principal_email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(JSON, nullable=True)

    # School-specific configuration
    academic_settings = Column(JSON, nullable=True)
    access_matrix = Column(JSON, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    SETTINGS_FIELDS = (
        "principal_name",
        "principal_email",
        "phone",
        "address",
        "academic_settings",
        "access_matrix",
        "is_active",
    )

    def __repr__(self):
        return f"<School(code={self.code}, name={self.name}, database={self.database_name})>"
