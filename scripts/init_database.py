#!/usr/bin/env python3
"""
数据库初始化脚本
创建 MySQL 数据库、表结构并写入默认词库
"""

import sys
import asyncio
from pathlib import Path

import pymysql
from sqlalchemy import select, func
from sqlalchemy.engine import make_url

# 添加项目根目录到路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from hatgame.core.config import settings  # noqa: E402
from hatgame.core.database import DatabaseManager  # noqa: E402
from hatgame.models.word_pair import WordPair  # noqa: E402
from hatgame.schemas.word_pair import WordPairCreate  # noqa: E402
from hatgame.services.word_pair import WordPairService  # noqa: E402

# 默认词汇对: (平民词, 黑帽词, 分类)
DEFAULT_WORD_PAIRS = [
    ("dâu tây", "cherry", "trái cây"),
    ("cam", "quýt", "trái cây"),
    ("xoài", "ổi", "trái cây"),
    ("nho", "nho khô", "trái cây"),
    ("móng tay", "móng chân", "bộ phận cơ thể"),
    ("lông mày", "lông mi", "bộ phận cơ thể"),
    ("khuỷu tay", "đầu gối", "bộ phận cơ thể"),
    ("sư tử", "hổ", "động vật"),
    ("chó", "mèo", "động vật"),
    ("vịt", "ngỗng", "động vật"),
    ("cá heo", "cá voi", "động vật"),
    ("đỏ", "hồng", "màu sắc"),
    ("xanh dương", "xanh lá", "màu sắc"),
    ("xe đạp", "xe máy", "phương tiện"),
    ("máy bay", "trực thăng", "phương tiện"),
    ("tàu hỏa", "tàu điện", "phương tiện"),
    ("bóng đá", "bóng rổ", "thể thao"),
    ("cầu lông", "quần vợt", "thể thao"),
]


def create_database(database_url: str) -> bool:
    """创建 MySQL 数据库（已存在则跳过）"""
    url = make_url(database_url)
    if not url.drivername.startswith("mysql"):
        print(f"跳过建库: {url.drivername} 不需要")
        return True

    print(f"连接 MySQL 服务器: {url.host}:{url.port or 3306}")
    try:
        conn = pymysql.connect(
            host=url.host or "localhost",
            port=url.port or 3306,
            user=url.username,
            password=url.password or "",
            charset="utf8mb4",
        )
        with conn.cursor() as cursor:
            cursor.execute(
                f"CREATE DATABASE IF NOT EXISTS `{url.database}` "
                "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
            )
        conn.close()
        print(f"数据库 '{url.database}' 已就绪")
        return True

    except pymysql.err.OperationalError as e:
        error_code = e.args[0]
        if error_code == 1045:
            print("错误: MySQL 认证失败，请检查用户名和密码")
        elif error_code == 2003:
            print(f"错误: 无法连接到 MySQL 服务器 {url.host}:{url.port or 3306}")
        else:
            print(f"MySQL 错误: {e}")
        return False


async def seed_word_pairs(db_manager: DatabaseManager) -> int:
    """写入默认词库（已有词对时跳过）"""
    async with db_manager.get_session() as session:
        count = (await session.execute(select(func.count(WordPair.id)))).scalar_one()
    if count:
        print(f"词库已有 {count} 个词对，跳过")
        return 0

    service = WordPairService(db_manager)
    for word_a, word_b, category_name in DEFAULT_WORD_PAIRS:
        await service.create_word_pair(
            WordPairCreate(word_a=word_a, word_b=word_b, category_name=category_name)
        )
    print(f"已写入 {len(DEFAULT_WORD_PAIRS)} 个词对")
    return len(DEFAULT_WORD_PAIRS)


async def init_tables_and_seed(database_url: str) -> None:
    print("\n初始化表结构...")
    db_manager = DatabaseManager(database_url)
    try:
        await db_manager.initialize(create_tables=True)
        print("表结构创建成功！")
        await seed_word_pairs(db_manager)
    finally:
        await db_manager.close()


def main():
    database_url = settings.DATABASE_URL
    if not create_database(database_url):
        sys.exit(1)
    asyncio.run(init_tables_and_seed(database_url))
    print("\n数据库初始化完成")


if __name__ == "__main__":
    main()
