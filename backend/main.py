## File: backend/main.py
# This file initializes the FastAPI application, configures logging, adds the request logging and CORS middleware,
# includes the display-rule admin and inventory availability routers, and opens the database connection on startup.

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backoffice.core.config import settings
from backoffice.core.request_log import RequestLogMiddleware
from backoffice.db.prisma_client import connect_db, disconnect_db
from backoffice.display_rules.routes import router as display_rules_router
from backoffice.inventory.routes import router as inventory_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title="Apparel Back Office")

app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(display_rules_router)
app.include_router(inventory_router)


@app.on_event("startup")
async def on_startup():
    await connect_db()


@app.on_event("shutdown")
async def on_shutdown():
    await disconnect_db()


@app.get("/")
async def root():
    return {"message": "Apparel back office availability service.", "env": settings.env}
