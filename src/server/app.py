# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config.loader import get_str_env
from src.server.session.dependencies import (
    initialise_session_controller,
    set_session_controller,
)
from src.server.session.router import router as session_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    controller = initialise_session_controller()
    await controller.local_store.init()
    set_session_controller(controller)
    await controller.start()
    logger.info("Session started in %s mode", controller.state.mode.value)
    yield


app = FastAPI(
    title="Chat Session API",
    description="Session state and intents for the chat assistant",
    version="0.1.0",
    lifespan=lifespan,
)

allowed_origins_str = get_str_env("ALLOWED_ORIGINS", "http://localhost:3000")
allowed_origins = [origin.strip() for origin in allowed_origins_str.split(",")]

logger.info("Allowed origins: %s", allowed_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(session_router)
