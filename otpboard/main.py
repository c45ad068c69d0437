import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from otpboard import config, models  # noqa: F401
from otpboard.database import SessionLocal, engine, init_db
from otpboard.email_utils import build_mailer
from otpboard.errors import AppError
from otpboard.otp_ledger import run_reaper
from otpboard.redis_utils import build_throttle
from otpboard.routes import auth_routes, boardroutes, contact_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.mailer = build_mailer()
    app.state.throttle = build_throttle()

    reaper = None
    if config.OTP_REAPER_INTERVAL_SECONDS > 0:
        reaper = asyncio.create_task(run_reaper(SessionLocal, config.OTP_REAPER_INTERVAL_SECONDS))
    logger.info("Startup complete")

    yield

    if reaper:
        reaper.cancel()
        try:
            await reaper
        except asyncio.CancelledError:
            pass
    await app.state.mailer.aclose()
    if app.state.throttle:
        app.state.throttle.close()
    engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(title="OTP Board", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_routes.router, prefix="/api")
app.include_router(contact_routes.router, prefix="/api")
app.include_router(boardroutes.router, prefix="/api")


@app.get("/api")
async def health_check():
    return {"message": "API server"}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(content={"detail": exc.detail}, status_code=exc.status_code)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        content={"detail": "Internal server error"},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def run():
    uvicorn.run(app, host=config.APP_HOST, port=config.APP_PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
