# schoolerp/services/class_subject_service.py
from itertools import groupby
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from schoolerp.core.errors import RecordNotFoundError, ValidationError
from schoolerp.core.logging import logger
from schoolerp.models import ClassSubject
from schoolerp.schemas.academics import (
    ClassSubjectCreate,
    ClassSubjectOut,
    ClassWithSubjects,
)
from schoolerp.services.base_service import BaseService


class ClassSubjectService(BaseService):

    def __init__(self, tenant, repos, default_academic_year: str):
        super().__init__(tenant, repos)
        self.default_academic_year = default_academic_year

    def _year(self, academic_year: Optional[str]) -> str:
        return academic_year or self.default_academic_year

    async def add_subject(self, data: ClassSubjectCreate) -> ClassSubjectOut:
        academic_year = self._year(data.academic_year)
        subject_name = data.subject_name.strip()

        existing = await self.repos.class_subjects.find(
            data.class_name, data.section, academic_year, subject_name
        )
        if existing is not None:
            raise ValidationError(
                f"Subject {subject_name} already exists for class {data.class_name}{data.section}"
            )

        subject = ClassSubject(
            class_name=data.class_name,
            section=data.section,
            academic_year=academic_year,
            subject_name=subject_name,
            subject_type=data.subject_type,
            teacher_id=data.teacher_id,
            teacher_name=data.teacher_name,
        )
        try:
            await self.repos.class_subjects.add(subject)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ValidationError(
                f"Subject {subject_name} already exists for class {data.class_name}{data.section}"
            )

        logger.info(f"Added {subject_name} to class {data.class_name}{data.section} ({academic_year})")
        return ClassSubjectOut.model_validate(subject)

    async def remove_subject(
        self,
        class_name: str,
        subject_name: str,
        section: str = "",
        academic_year: Optional[str] = None,
    ) -> None:
        subject = await self.repos.class_subjects.find(
            class_name, section, self._year(academic_year), subject_name
        )
        if subject is None:
            raise RecordNotFoundError("Subject not found for this class")

        await self.repos.class_subjects.delete(subject)
        await self.db.commit()
        logger.info(f"Removed {subject_name} from class {class_name}{section}")

    async def list_classes(self, academic_year: Optional[str] = None) -> List[ClassWithSubjects]:
        subjects = await self.repos.class_subjects.list(academic_year=self._year(academic_year))

        classes = []
        key = lambda s: (s.class_name, s.section, s.academic_year)
        for (class_name, section, year), rows in groupby(subjects, key=key):
            classes.append(ClassWithSubjects(
                class_name=class_name,
                section=section,
                academic_year=year,
                subjects=[ClassSubjectOut.model_validate(row) for row in rows],
            ))
        return classes

    async def list_subjects(
        self, class_name: str, section: Optional[str] = None, academic_year: Optional[str] = None
    ) -> List[ClassSubjectOut]:
        subjects = await self.repos.class_subjects.list(
            class_name=class_name, academic_year=self._year(academic_year)
        )
        if section is not None:
            subjects = [s for s in subjects if s.section == section]
        return [ClassSubjectOut.model_validate(s) for s in subjects]
