import sys
import os
from contextlib import asynccontextmanager
from typing import Optional, Union

# Add the root project directory to Python path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from dotenv import load_dotenv
load_dotenv()

import uvicorn
from fastapi import FastAPI

from wpmcp import Config, FileSystemGate
from altar import lifecycle
from altar.api import events as events_api
from altar.api import files as files_api
from altar.api import health as health_api
from altar.middleware.security import BasicAuthMiddleware
from altar.services.events import EventBus, build_emitter


def create_app(
    api_user: Optional[str] = None,
    api_password: Optional[str] = None,
    api_user_id: Union[int, str, None] = None,
    event_bus: Optional[EventBus] = None,
) -> FastAPI:
    """
    Build the FastAPI application serving the WordPress file endpoints.

    Credentials default to WPMCP_API_USER / WPMCP_API_PASSWORD /
    WPMCP_API_USER_ID from configuration.
    """
    event_bus = event_bus or EventBus()
    emit_event = build_emitter(event_bus)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await lifecycle.startup(emit_event)
        yield
        await lifecycle.shutdown()

    app = FastAPI(title="wpmcp", lifespan=lifespan)
    app.state.event_bus = event_bus

    app.add_middleware(
        BasicAuthMiddleware,
        username=api_user if api_user is not None else Config.get("WPMCP_API_USER"),
        password=api_password if api_password is not None else Config.get("WPMCP_API_PASSWORD"),
        user_id=api_user_id if api_user_id is not None else Config.get("WPMCP_API_USER_ID", 1),
    )

    app.include_router(files_api.create_router(FileSystemGate, emit_event))
    app.include_router(events_api.create_router(event_bus))
    app.include_router(health_api.create_router())

    return app


def main():
    uvicorn.run(
        create_app(),
        host=Config.get("HOST", "127.0.0.1"),
        port=Config.get("PORT", 8000),
        log_level=str(Config.get("LOG_LEVEL", "INFO")).lower(),
    )


if __name__ == "__main__":
    main()
