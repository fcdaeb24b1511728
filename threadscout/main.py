from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from threadscout.api.routes import search
from threadscout.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield


app = FastAPI(
    title="ThreadScout",
    description="Answers questions from ranked forum discussions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(search.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "threadscout"}


def serve():
    """Run the API with uvicorn on the configured host and port."""
    uvicorn.run(app, host=settings.app_host, port=settings.app_port)
