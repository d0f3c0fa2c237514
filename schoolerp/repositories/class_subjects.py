from typing import List, Optional

from sqlalchemy import select

from schoolerp.models import ClassSubject

from .base import BaseRepository


class ClassSubjectRepository(BaseRepository[ClassSubject]):
    model = ClassSubject

    async def find(
        self, class_name: str, section: str, academic_year: str, subject_name: str
    ) -> Optional[ClassSubject]:
        result = await self.session.execute(
            select(ClassSubject).where(
                ClassSubject.class_name == class_name,
                ClassSubject.section == section,
                ClassSubject.academic_year == academic_year,
                ClassSubject.subject_name == subject_name,
            )
        )
        return result.scalar_one_or_none()

    async def list(
        self, class_name: Optional[str] = None, academic_year: Optional[str] = None
    ) -> List[ClassSubject]:
        query = select(ClassSubject)
        if class_name:
            query = query.where(ClassSubject.class_name == class_name)
        if academic_year:
            query = query.where(ClassSubject.academic_year == academic_year)
        result = await self.session.execute(
            query.order_by(ClassSubject.class_name, ClassSubject.section, ClassSubject.subject_name)
        )
        return list(result.scalars().all())
