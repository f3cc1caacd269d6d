"""
Word pair service
词汇对服务 - 随机抽取与词库管理
"""

import random
import uuid
import logging
from typing import List, Optional

from sqlalchemy import select, func

from hatgame.core.database import DatabaseManager
from hatgame.core.exceptions import WordPairNotFoundError
from hatgame.models.word_pair import WordCategory, WordPair
from hatgame.schemas.game import PlayerRole
from hatgame.schemas.word_pair import (
    WordPairCreate, WordPairResponse, CategoryResponse, WordPairListResponse
)

logger = logging.getLogger(__name__)


def word_for_role(pair: WordPairResponse, role: Optional[PlayerRole]) -> Optional[str]:
    """Secret word handed to a role; WHITE_HAT gets none"""
    if role == PlayerRole.CIVILIAN:
        return pair.word_a
    if role == PlayerRole.BLACK_HAT:
        return pair.word_b
    return None


def _to_response(pair: WordPair, category_name: Optional[str] = None) -> WordPairResponse:
    return WordPairResponse(
        id=pair.id,
        word_a=pair.word_a,
        word_b=pair.word_b,
        category_id=pair.category_id,
        category_name=category_name,
        is_active=pair.is_active,
        created_at=pair.created_at,
    )


class WordPairService:
    """词汇对服务类"""

    def __init__(self, db_manager: DatabaseManager, rng: Optional[random.Random] = None):
        self.db_manager = db_manager
        self.rng = rng or random.Random()

    async def get_random_active_pair(self, category_id: Optional[str] = None) -> Optional[WordPairResponse]:
        """Pick a random active pair, optionally within one category"""
        async with self.db_manager.get_session() as session:
            conditions = [WordPair.is_active.is_(True)]
            if category_id:
                conditions.append(WordPair.category_id == category_id)

            count = (await session.execute(
                select(func.count(WordPair.id)).where(*conditions)
            )).scalar_one()
            if count == 0:
                logger.warning(f"No active word pair available (category={category_id})")
                return None

            offset = self.rng.randrange(count)
            stmt = (
                select(WordPair, WordCategory.name)
                .join(WordCategory, WordPair.category_id == WordCategory.id)
                .where(*conditions)
                .order_by(WordPair.id)
                .offset(offset)
                .limit(1)
            )
            row = (await session.execute(stmt)).first()
            if not row:
                return None
            pair, category_name = row
            return _to_response(pair, category_name)

    async def get_word_pair(self, word_pair_id: str) -> WordPairResponse:
        """Fetch a pair by id, active or not"""
        async with self.db_manager.get_session() as session:
            stmt = (
                select(WordPair, WordCategory.name)
                .join(WordCategory, WordPair.category_id == WordCategory.id)
                .where(WordPair.id == word_pair_id)
            )
            row = (await session.execute(stmt)).first()
            if not row:
                raise WordPairNotFoundError(word_pair_id=word_pair_id)
            pair, category_name = row
            return _to_response(pair, category_name)

    async def create_word_pair(self, data: WordPairCreate) -> WordPairResponse:
        """Add a pair, creating its category on first use"""
        async with self.db_manager.get_session() as session:
            category = (await session.execute(
                select(WordCategory).where(WordCategory.name == data.category_name)
            )).scalar_one_or_none()
            if not category:
                category = WordCategory(id=str(uuid.uuid4()), name=data.category_name)
                session.add(category)
                await session.flush()

            pair = WordPair(
                id=str(uuid.uuid4()),
                word_a=data.word_a,
                word_b=data.word_b,
                category_id=category.id,
                is_active=True,
            )
            session.add(pair)
            await session.flush()
            await session.refresh(pair)

            logger.info(f"Word pair {pair.id} added to category {category.name}")
            return _to_response(pair, category.name)

    async def list_categories(self) -> List[CategoryResponse]:
        async with self.db_manager.get_session() as session:
            stmt = (
                select(WordCategory, func.count(WordPair.id))
                .outerjoin(WordPair, (WordPair.category_id == WordCategory.id) & WordPair.is_active.is_(True))
                .group_by(WordCategory.id)
                .order_by(WordCategory.name)
            )
            rows = (await session.execute(stmt)).all()
            return [
                CategoryResponse(id=category.id, name=category.name, word_pair_count=count)
                for category, count in rows
            ]

    async def list_word_pairs(
        self, category_id: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> WordPairListResponse:
        page = max(page, 1)
        limit = min(max(limit, 1), 100)

        async with self.db_manager.get_session() as session:
            conditions = [WordPair.category_id == category_id] if category_id else []

            total = (await session.execute(
                select(func.count(WordPair.id)).where(*conditions)
            )).scalar_one()

            stmt = (
                select(WordPair, WordCategory.name)
                .join(WordCategory, WordPair.category_id == WordCategory.id)
                .where(*conditions)
                .order_by(WordPair.created_at.desc(), WordPair.id)
                .offset((page - 1) * limit)
                .limit(limit)
            )
            rows = (await session.execute(stmt)).all()

        return WordPairListResponse(
            pairs=[_to_response(pair, name) for pair, name in rows],
            total=total,
            page=page,
            limit=limit,
        )

    async def deactivate_word_pair(self, word_pair_id: str) -> None:
        """Soft delete: the pair stays referenced by past rounds"""
        async with self.db_manager.get_session() as session:
            pair = await session.get(WordPair, word_pair_id)
            if not pair:
                raise WordPairNotFoundError(word_pair_id=word_pair_id)
            pair.is_active = False
        logger.info(f"Word pair {word_pair_id} deactivated")
