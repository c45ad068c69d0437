import logging

import redis

from otpboard import config
from otpboard.errors import StorageError, TooManyAttempts

logger = logging.getLogger(__name__)


class LoginThrottle:
    """Counts failed logins per username in redis, in a sliding reset window."""

    def __init__(self, client: redis.Redis, max_attempts: int = config.MAX_LOGIN_ATTEMPTS,
                 window: int = config.ATTEMPT_RESET):
        self.r = client
        self.max_attempts = max_attempts
        self.window = window

    @staticmethod
    def _key(username: str) -> str:
        return f"login:{username}"

    def check(self, username: str):
        try:
            count = self.r.get(self._key(username))
        except redis.RedisError as e:
            raise StorageError() from e
        if count and int(count) >= self.max_attempts:
            logger.warning(f"Login throttled for {username}")
            raise TooManyAttempts()

    def record_failure(self, username: str):
        key = self._key(username)
        try:
            pipe = self.r.pipeline()
            pipe.incr(key)
            pipe.expire(key, self.window)
            pipe.execute()
        except redis.RedisError as e:
            raise StorageError() from e

    def reset(self, username: str):
        try:
            self.r.delete(self._key(username))
        except redis.RedisError as e:
            raise StorageError() from e

    def close(self):
        self.r.close()


def build_throttle() -> LoginThrottle | None:
    if not config.LOGIN_THROTTLE_ENABLED:
        return None
    client = redis.Redis(
        host=config.REDIS_HOST,
        port=config.REDIS_PORT,
        db=config.REDIS_DB,
        decode_responses=True,
        socket_timeout=config.REDIS_TIMEOUT_SECONDS,
        socket_connect_timeout=config.REDIS_TIMEOUT_SECONDS,
    )
    return LoginThrottle(client)
