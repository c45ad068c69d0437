"""
Two-step login: password check that mails an OTP, then OTP check.

    AWAITING_CREDENTIALS --(username, password)--> AWAITING_OTP
    AWAITING_OTP         --(otp)-----------------> AUTHENTICATED

A failed step is recorded as a move to FAILED and the flow drops back to the
state it was in, ready for another attempt. Nothing about the flow itself is
persisted; the OTP ledger is the only shared state.
"""
import logging
from dataclasses import dataclass
from enum import Enum

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from otpboard import otp_ledger
from otpboard.auth import check_credentials, find_by_username
from otpboard.email_utils import Mailer
from otpboard.errors import AppError, InvalidCredentials, InvalidOtp
from otpboard.redis_utils import LoginThrottle

logger = logging.getLogger(__name__)

OTP_SUBJECT = "Login OTP Verification"
OTP_BODY = "Your OTP for login is {code}"


class LoginState(str, Enum):
    AWAITING_CREDENTIALS = "awaiting_credentials"
    AWAITING_OTP = "awaiting_otp"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass
class PendingVerification:
    user_id: str


@dataclass
class AuthenticatedUser:
    user_id: str


class LoginFlow:
    def __init__(self, db: Session, mailer: Mailer | None = None,
                 throttle: LoginThrottle | None = None,
                 state: LoginState = LoginState.AWAITING_CREDENTIALS):
        self.db = db
        self.mailer = mailer
        self.throttle = throttle
        self.state = state
        self.history: list[tuple[LoginState, LoginState]] = []

    def _require(self, expected: LoginState):
        if self.state != expected:
            raise RuntimeError(f"Login flow is {self.state.value}, expected {expected.value}")

    def _move(self, new_state: LoginState):
        self.history.append((self.state, new_state))
        self.state = new_state

    def _fail(self):
        prior = self.state
        self.history.append((prior, LoginState.FAILED))
        # FAILED is transient: back to where we were for a fresh attempt.
        self.history.append((LoginState.FAILED, prior))

    def _check_and_issue(self, username: str, password: str) -> tuple[str, str, str]:
        if self.throttle:
            self.throttle.check(username)

        user = find_by_username(self.db, username)
        if not check_credentials(user, password):
            if self.throttle:
                self.throttle.record_failure(username)
            logger.info(f"Rejected login for {username}")
            raise InvalidCredentials()

        if self.throttle:
            self.throttle.reset(username)
        code = otp_ledger.issue(self.db, user.internal_id)
        return user.internal_id, user.email, code

    async def submit_credentials(self, username: str, password: str) -> PendingVerification:
        self._require(LoginState.AWAITING_CREDENTIALS)
        if self.mailer is None:
            raise RuntimeError("A mailer is required to deliver the OTP")

        try:
            user_id, email, code = await run_in_threadpool(self._check_and_issue, username, password)
            # The code stays valid if delivery fails; the user can simply log in again.
            await self.mailer.send(email, OTP_SUBJECT, OTP_BODY.format(code=code))
        except AppError:
            self._fail()
            raise

        self._move(LoginState.AWAITING_OTP)
        return PendingVerification(user_id=user_id)

    async def submit_otp(self, code: str) -> AuthenticatedUser:
        self._require(LoginState.AWAITING_OTP)

        try:
            user_id = await run_in_threadpool(otp_ledger.verify, self.db, code)
            if user_id is None:
                raise InvalidOtp()
        except AppError:
            self._fail()
            raise

        self._move(LoginState.AUTHENTICATED)
        return AuthenticatedUser(user_id=user_id)
