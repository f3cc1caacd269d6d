"""
Word Pair Pydantic schemas
词汇对数据验证和序列化模型
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime


class WordPairCreate(BaseModel):
    """创建词汇对请求"""
    word_a: str = Field(..., min_length=1, max_length=100, description="Civilian word")
    word_b: str = Field(..., min_length=1, max_length=100, description="Black hat word")
    category_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("word_a", "word_b", "category_name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Value must not be blank")
        return v

    @model_validator(mode="after")
    def words_differ(self):
        if self.word_a.casefold() == self.word_b.casefold():
            raise ValueError("The two words of a pair must differ")
        return self


class WordPairResponse(BaseModel):
    """词汇对响应"""
    id: str
    word_a: str
    word_b: str
    category_id: str
    category_name: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CategoryResponse(BaseModel):
    id: str
    name: str
    word_pair_count: int = 0


class WordPairListResponse(BaseModel):
    pairs: List[WordPairResponse]
    total: int
    page: int
    limit: int
