import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from alerting.alerting_service import AlertingService
from api.router import router as alerting_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def create_app(service: Optional[AlertingService] = None, autostart: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if autostart:
            await app.state.alerting.start_all()
        yield
        await app.state.alerting.stop_all()

    app = FastAPI(lifespan=lifespan)
    app.state.alerting = service if service is not None else AlertingService.from_environment()
    app.include_router(alerting_router)
    return app


app = create_app()
