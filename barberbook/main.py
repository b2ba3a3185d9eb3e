# barberbook/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .db import init_db
from .routers import appointments_routes, auth_routes, barbers_routes, barbershops_routes, users_routes


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in ("appointment_id", "barber_id", "date", "start_time", "reason"):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    yield


app = FastAPI(title="Barbershop Booking", version="1.0.0", lifespan=lifespan)

app.include_router(users_routes.router)
app.include_router(auth_routes.router)
app.include_router(barbershops_routes.router)
app.include_router(barbers_routes.router)
app.include_router(appointments_routes.router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
