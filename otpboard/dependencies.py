from fastapi import Request

from otpboard.email_utils import Mailer
from otpboard.redis_utils import LoginThrottle


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_throttle(request: Request) -> LoginThrottle | None:
    return getattr(request.app.state, "throttle", None)
