import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles
from loguru import logger

from globalfm import config
from globalfm.bookmarks import BookmarkStore
from globalfm.catalog import CatalogService
from globalfm.search import search_stations


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.configure_logging()
    logger.info("🚀 Initializing GlobalFM catalog...")
    service = CatalogService()
    app.state.catalog = service
    app.state.bookmarks = BookmarkStore()
    stations = await service.get_catalog()
    logger.info(f"Catalog ready with {len(stations)} stations")
    try:
        yield
    finally:
        await service.stop()
        await service.cache.flush()
        await service.client.aclose()


app = FastAPI(lifespan=lifespan)


def _catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


# --- CATALOG ---
@app.get("/api/stations")
async def get_stations(request: Request, limit: int = Query(2000, ge=1)):
    service = _catalog(request)
    stations = await service.get_catalog()
    return [s.model_dump() for s in stations[:limit]]


@app.get("/api/stations/search")
async def search(request: Request, q: str = ""):
    return [s.model_dump() for s in search_stations(_catalog(request).snapshot, q)]


@app.get("/api/stations/status")
def loader_status(request: Request):
    return _catalog(request).status()


@app.post("/api/stations/refresh")
async def refresh(request: Request):
    stations = await _catalog(request).refresh()
    return {"stations": len(stations)}


# --- BOOKMARKS ---
@app.get("/api/bookmarks")
def get_bookmarks(request: Request):
    return request.app.state.bookmarks.all()


@app.post("/api/bookmarks/{station_id}")
def toggle_bookmark(request: Request, station_id: str):
    return {"station_id": station_id, "bookmarked": request.app.state.bookmarks.toggle(station_id)}


# Silence the favicon 404 logs
@app.get("/favicon.ico")
def favicon(): return Response(status_code=204)


base_path = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
dist_path = os.path.join(base_path, "dist")

if os.path.exists(dist_path):
    app.mount("/", StaticFiles(directory=dist_path, html=True), name="static")

if __name__ == "__main__":
    uvicorn.run("globalfm.main:app", host="0.0.0.0", port=8000, reload=True)
