import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from marketchat.config import configure_logging
from marketchat.database.connection import close_mongo_connection, connect_to_mongo, mongo_db_dependency
from marketchat.routers.chat import router as chat_router
from marketchat.routers.conversations import router as conversations_router
from marketchat.utils.errors import MessageValidationError, NotFoundError, TransientStoreError
from marketchat.utils.realtime_bus import close_bus, get_bus


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):

    configure_logging()
    await connect_to_mongo()
    await get_bus()
    try:
        yield
    finally:
        await close_bus()
        await close_mongo_connection()


app = FastAPI(title="Campus Marketplace Chat", lifespan=lifespan)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(MessageValidationError)
async def validation_handler(request: Request, exc: MessageValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(TransientStoreError)
async def store_unavailable_handler(request: Request, exc: TransientStoreError):
    return JSONResponse(status_code=503, content={"detail": "Storage temporarily unavailable, try again"})


app.include_router(conversations_router)
app.include_router(chat_router)


@app.get("/health")
async def health(db: AsyncIOMotorDatabase = Depends(mongo_db_dependency)):
    try:
        await db.list_collection_names()
    except PyMongoError as exc:
        logger.warning("Health check failed: %s", exc)
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return {"status": "ok"}
