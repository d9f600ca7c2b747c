"""FastAPI Web 应用入口。"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.web.routers.books import router as books_router

app = FastAPI(title="epubnav", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(books_router)


@app.get("/")
async def root() -> dict:
    return {"message": "epubnav API", "docs": "/docs"}
