import locale
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, settings
from .errors import StoreError
from .logging_config import setup_logging
from .notifier import ObserverRegistry
from .routers import events, health, markdown
from .store import DocumentStore


async def store_error_handler(request: Request, exc: StoreError):
	return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def create_app(app_settings: Settings = settings) -> FastAPI:
	@asynccontextmanager
	async def lifespan(app: FastAPI):
		# Startup
		registry = ObserverRegistry()
		app.state.registry = registry
		app.state.store = DocumentStore.open(app_settings.volume_path, app_settings.root_name, registry)
		yield
		# Shutdown
		registry.clear()

	app = FastAPI(title="Markdown Notes Store API", version="0.1.0", lifespan=lifespan)
	app.state.settings = app_settings

	# CORS (adjust in .env if exposing publicly)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=app_settings.cors_allow_origins,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)

	app.add_exception_handler(StoreError, store_error_handler)

	app.include_router(health.router)
	app.include_router(markdown.router)
	app.include_router(events.router)

	return app


app = create_app()


def run():
	setup_logging()
	try:
		# Name ordering in trees and listings follows the user locale
		locale.setlocale(locale.LC_COLLATE, "")
	except locale.Error:
		logging.warning("Could not apply the environment locale, sorting with the C locale")
	uvicorn.run(app, host="0.0.0.0", port=settings.port)
