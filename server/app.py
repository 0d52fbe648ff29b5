from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

import config
from db.database import Database
from db.projects import UserRepository
from db.storage import BlobStorage
from processing.llm_client import LlmClient
from processing.summarizer import Summarizer
from recorder.session import RecordingSession
from server.project_routes import create_project_router
from server.routes import create_router
from services.persistence import PersistenceGateway


def create_app(db: Database, session: RecordingSession, gateway: PersistenceGateway,
               summarizer: Summarizer, storage: BlobStorage, client: LlmClient) -> FastAPI:
    app = FastAPI(title="Prompt Studio", version="0.1.0")

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())},
        )

    app.include_router(create_router(session, gateway, summarizer, storage, UserRepository(db)), prefix="/api")
    app.include_router(create_project_router(db, client, gateway), prefix="/api")

    if config.STATIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=str(config.STATIC_DIR), html=True), name="static")

    return app
