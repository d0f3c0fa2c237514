from sqlalchemy import Column, DateTime, Float, Index, Integer, JSON, String, Text

from .base import TenantBase, TimestampMixin


class Result(TimestampMixin, TenantBase):
    """Nested result sheet: one row per student per class and academic year"""
    __tablename__ = "results"

    id = Column(Integer, primary_key=True)
    school_code = Column(String(20), nullable=False)
    student_id = Column(String(64), nullable=False, index=True)
    student_name = Column(String(255), nullable=True)
    user_id = Column(String(64), nullable=True)
    class_name = Column(String(50), nullable=False)
    section = Column(String(20), nullable=True)
    academic_year = Column(String(20), nullable=False)
    subjects = Column(JSON, nullable=False, default=list)
    created_by = Column(String(64), nullable=True)

    # Migration bookkeeping
    migrated_from = Column(JSON, nullable=True)
    migrated_at = Column(DateTime(timezone=True), nullable=True)
    migration_note = Column(String(255), nullable=True)

    __table_args__ = (
        Index("ix_results_student_year", "student_id", "class_name", "section", "academic_year"),
    )

    def __repr__(self):
        return f"<Result(student={self.student_id}, year={self.academic_year}, subjects={len(self.subjects or [])})>"


class LegacyResultRow(TimestampMixin, TenantBase):
    """Older flat layout: one row per subject per test"""
    __tablename__ = "legacy_results"

    id = Column(Integer, primary_key=True)
    school_code = Column(String(20), nullable=False)
    student_id = Column(String(64), nullable=False, index=True)
    student_name = Column(String(255), nullable=True)
    user_id = Column(String(64), nullable=True)
    class_name = Column(String(50), nullable=False)
    section = Column(String(20), nullable=True)
    academic_year = Column(String(20), nullable=True)
    test_type = Column(String(50), nullable=False)
    subject = Column(String(100), nullable=True)
    max_marks = Column(Float, nullable=True)
    obtained_marks = Column(Float, nullable=True)
    total_marks = Column(Float, nullable=True)
    grade = Column(String(5), nullable=True)
    percentage = Column(Float, nullable=True)
    created_by = Column(String(64), nullable=True)
    remarks = Column(Text, nullable=True)

    # Set once the row has been copied into a nested Result
    migrated_to = Column(Integer, nullable=True, index=True)

    def __repr__(self):
        return f"<LegacyResultRow(student={self.student_id}, subject={self.subject}, test={self.test_type})>"
