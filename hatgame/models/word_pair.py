"""
Word pair model
词汇对数据模型
"""

from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from hatgame.core.database import Base


class WordCategory(Base):
    """Category grouping related word pairs"""

    __tablename__ = "word_categories"

    id = Column(String(36), primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    word_pairs = relationship("WordPair", back_populates="category")

    def __repr__(self):
        return f"<WordCategory(id={self.id}, name={self.name})>"


class WordPair(Base):
    """Two related words: word_a for civilians, word_b for the black hat"""

    __tablename__ = "word_pairs"

    id = Column(String(36), primary_key=True, index=True)
    word_a = Column(String(100), nullable=False)
    word_b = Column(String(100), nullable=False)
    category_id = Column(String(36), ForeignKey("word_categories.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)  # 软删除标记

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    category = relationship("WordCategory", back_populates="word_pairs")

    def __repr__(self):
        return f"<WordPair(id={self.id}, category_id={self.category_id})>"
