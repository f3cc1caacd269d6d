"""
Word catalogue API endpoints
词库管理API端点
"""

from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, Query, status

from hatgame.api.deps import get_current_user_id, get_word_pair_service
from hatgame.services.word_pair import WordPairService
from hatgame.schemas.word_pair import (
    WordPairCreate, WordPairResponse, CategoryResponse, WordPairListResponse
)
from hatgame.schemas.common import MessageResponse

# 词库接口都需要登录
router = APIRouter(dependencies=[Depends(get_current_user_id)])


@router.get("/categories", response_model=Dict[str, List[CategoryResponse]])
async def list_categories(word_pair_service: WordPairService = Depends(get_word_pair_service)):
    """获取所有分类及其可用词对数量"""
    return {"categories": await word_pair_service.list_categories()}


@router.get("", response_model=WordPairListResponse)
async def list_word_pairs(
    category_id: Optional[str] = Query(None, alias="categoryId"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    word_pair_service: WordPairService = Depends(get_word_pair_service),
):
    """分页列出词对"""
    return await word_pair_service.list_word_pairs(category_id, page, limit)


@router.post("", response_model=WordPairResponse, status_code=status.HTTP_201_CREATED)
async def create_word_pair(
    data: WordPairCreate,
    word_pair_service: WordPairService = Depends(get_word_pair_service),
):
    """
    手动添加词对

    - **word_a**: 平民词
    - **word_b**: 黑帽词
    - **category_name**: 分类（不存在时自动创建）
    """
    return await word_pair_service.create_word_pair(data)


@router.delete("/{word_pair_id}", response_model=MessageResponse)
async def delete_word_pair(
    word_pair_id: str,
    word_pair_service: WordPairService = Depends(get_word_pair_service),
):
    """停用词对（软删除）"""
    await word_pair_service.deactivate_word_pair(word_pair_id)
    return MessageResponse(message="Word pair removed")
