"""
FastAPI main application entry point
黑白帽猜词游戏主应用入口
"""

import os
import random
import logging
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hatgame.core.config import settings
from hatgame.core.database import DatabaseManager
from hatgame.core.redis_client import RedisManager
from hatgame.core.exceptions import GameError
from hatgame.api.v1.api import api_router
from hatgame.api.v1.endpoints import health
from hatgame.services.game import GameEngine
from hatgame.services.game_recorder import GameRecorder
from hatgame.services.room import RoomService
from hatgame.services.session_store import RedisGameSessionStore
from hatgame.services.word_pair import WordPairService
from hatgame.websocket.connection_manager import ConnectionManager

# Configure logging - 同时输出到控制台和文件
handlers = [logging.StreamHandler()]  # 控制台输出
if settings.LOG_FILE:
    # 确保日志目录存在
    log_dir = os.path.dirname(settings.LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    handlers.append(logging.FileHandler(settings.LOG_FILE, encoding="utf-8"))  # 文件输出

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format=settings.LOG_FORMAT,
    handlers=handlers,
)
logger = logging.getLogger(__name__)

# 减少 SQLAlchemy 和 httpx 的日志噪音
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def configure_services(
    app: FastAPI,
    db_manager: DatabaseManager,
    redis_manager: RedisManager,
    role_rng: Optional[random.Random] = None,
    turn_rng: Optional[random.Random] = None,
) -> None:
    """Wire every collaborator onto ``app.state``"""
    session_store = RedisGameSessionStore(redis_manager, db_manager)
    room_service = RoomService(db_manager, redis_manager, session_store)
    word_pair_service = WordPairService(db_manager)
    connection_manager = ConnectionManager()
    game_recorder = GameRecorder(db_manager)

    app.state.db_manager = db_manager
    app.state.redis_manager = redis_manager
    app.state.session_store = session_store
    app.state.room_service = room_service
    app.state.word_pair_service = word_pair_service
    app.state.connection_manager = connection_manager
    app.state.game_recorder = game_recorder
    app.state.game_engine = GameEngine(
        room_service=room_service,
        session_store=session_store,
        word_pair_service=word_pair_service,
        broadcaster=connection_manager,
        recorder=game_recorder,
        role_rng=role_rng,
        turn_rng=turn_rng,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the durable store and the cache, close them on shutdown"""
    logger.info("Starting hat game server...")

    db_manager = DatabaseManager()
    redis_manager = RedisManager()
    try:
        await db_manager.initialize(create_tables=settings.ENVIRONMENT != "production")
        await redis_manager.initialize()
    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise

    configure_services(app, db_manager, redis_manager)
    logger.info("Application startup completed successfully")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await redis_manager.close()
    await db_manager.close()
    logger.info("Application shutdown completed")


app = FastAPI(
    title="Hat Game",
    description="Black Hat / White Hat - multiplayer social deduction word game",
    version="1.0.0",
    lifespan=lifespan,
    # 禁用尾部斜杠重定向，避免 307 Redirect 导致 Authorization header 丢失
    redirect_slashes=False
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    """Structured error body with the status code carried by the error class"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.params}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include API routes
app.include_router(health.router, tags=["health"])
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "message": "Hat Game API",
        "status": "running",
        "version": "1.0.0"
    }
