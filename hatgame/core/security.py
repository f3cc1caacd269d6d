"""
Access token verification
访问令牌校验 - 令牌由外部认证服务签发，这里只负责解码
"""

import logging
from typing import Optional

from jose import JWTError, jwt

from hatgame.core.config import settings

logger = logging.getLogger(__name__)


def decode_access_token(token: str) -> Optional[str]:
    """Return the user id carried by ``token``, or None if it is invalid"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        return None

    return payload.get("sub") or payload.get("userId")
