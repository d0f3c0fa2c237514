from typing import Iterable, List, Optional, Set

from sqlalchemy import delete, desc, select, update

from schoolerp.models import LegacyResultRow, Result

from .base import BaseRepository


class ResultRepository(BaseRepository[Result]):
    model = Result

    async def list_for_student(
        self, student_id: str, academic_year: Optional[str] = None
    ) -> List[Result]:
        query = select(Result).where(Result.student_id == student_id)
        if academic_year:
            query = query.where(Result.academic_year == academic_year)
        result = await self.session.execute(
            query.order_by(desc(Result.academic_year), Result.class_name)
        )
        return list(result.scalars().all())

    async def find_sheet(
        self, student_id: str, class_name: str, section: Optional[str], academic_year: str
    ) -> Optional[Result]:
        result = await self.session.execute(
            select(Result).where(
                Result.student_id == student_id,
                Result.class_name == class_name,
                Result.section == section,
                Result.academic_year == academic_year,
            )
        )
        return result.scalars().first()

    async def list_for_class(
        self, class_name: str, section: Optional[str], academic_year: str
    ) -> List[Result]:
        result = await self.session.execute(
            select(Result)
            .where(
                Result.class_name == class_name,
                Result.section == section,
                Result.academic_year == academic_year,
            )
            .order_by(Result.student_id)
        )
        return list(result.scalars().all())

    async def existing_ids(self, result_ids: Iterable[int]) -> Set[int]:
        ids = set(result_ids)
        if not ids:
            return set()
        result = await self.session.execute(select(Result.id).where(Result.id.in_(ids)))
        return set(result.scalars().all())


class LegacyResultRepository(BaseRepository[LegacyResultRow]):
    model = LegacyResultRow

    async def unmigrated(self) -> List[LegacyResultRow]:
        result = await self.session.execute(
            select(LegacyResultRow)
            .where(LegacyResultRow.migrated_to.is_(None))
            .order_by(LegacyResultRow.id)
        )
        return list(result.scalars().all())

    async def backlinked(self) -> List[LegacyResultRow]:
        result = await self.session.execute(
            select(LegacyResultRow).where(LegacyResultRow.migrated_to.is_not(None))
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def set_backlink(self, row_ids: Iterable[int], result_id: Optional[int]) -> int:
        ids = list(row_ids)
        if not ids:
            return 0
        outcome = await self.session.execute(
            update(LegacyResultRow)
            .where(LegacyResultRow.id.in_(ids))
            .values(migrated_to=result_id)
            .execution_options(synchronize_session=False)
        )
        return outcome.rowcount

    async def delete_many(self, row_ids: Iterable[int]) -> int:
        ids = list(row_ids)
        if not ids:
            return 0
        outcome = await self.session.execute(
            delete(LegacyResultRow)
            .where(LegacyResultRow.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        return outcome.rowcount
