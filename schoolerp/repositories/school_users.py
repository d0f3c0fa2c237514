from typing import Dict, Iterable, Optional

from sqlalchemy import or_, select

from schoolerp.models import SchoolUser

from .base import BaseRepository


class SchoolUserRepository(BaseRepository[SchoolUser]):
    model = SchoolUser

    async def get_by_user_id(self, user_id: str) -> Optional[SchoolUser]:
        result = await self.session.execute(
            select(SchoolUser).where(SchoolUser.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_user_id_or_email(self, identifier: str) -> Optional[SchoolUser]:
        result = await self.session.execute(
            select(SchoolUser).where(
                or_(SchoolUser.user_id == identifier, SchoolUser.email == identifier)
            )
        )
        return result.scalars().first()

    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, SchoolUser]:
        ids = {user_id for user_id in user_ids if user_id}
        if not ids:
            return {}
        result = await self.session.execute(
            select(SchoolUser).where(SchoolUser.user_id.in_(ids))
        )
        return {user.user_id: user for user in result.scalars().all()}
