from sqlalchemy import Column, Integer, String, UniqueConstraint

from .base import TenantBase, TimestampMixin


class ClassSubject(TimestampMixin, TenantBase):
    __tablename__ = "class_subjects"

    id = Column(Integer, primary_key=True)
    class_name = Column(String(50), nullable=False, index=True)
    section = Column(String(20), nullable=False, default="")
    academic_year = Column(String(20), nullable=False)
    subject_name = Column(String(100), nullable=False)
    subject_type = Column(String(30), nullable=False, default="core")
    teacher_id = Column(String(64), nullable=True)
    teacher_name = Column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "class_name", "section", "academic_year", "subject_name",
            name="uq_class_subject",
        ),
    )

    def __repr__(self):
        return f"<ClassSubject(class={self.class_name}{self.section}, subject={self.subject_name})>"
