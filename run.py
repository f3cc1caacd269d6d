"""
Development server runner
开发服务器启动脚本
"""

import uvicorn
from hatgame.core.config import settings

if __name__ == "__main__":
    # 房间锁在进程内，只能单进程运行；开发模式启用 reload
    uvicorn.run(
        "hatgame.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1,
        access_log=True,
        log_level=settings.LOG_LEVEL.lower()
    )
