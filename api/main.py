from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import select

from db import models
from db.session import CatalogStore
from scripts.lib.archive_inspector import ImportRequest, analyze_archive, import_archive
from scripts.lib.asset_ops import delete_asset, list_assets_for_entity, toggle_asset
from scripts.lib.errors import (
    ArchiveFormatError,
    BatchOperationError,
    CatalogError,
    ConfigurationError,
    ConflictError,
    FolderMissingError,
    NotFoundError,
)
from scripts.lib.events import BackgroundRunner, EventBus, RecordingSink
from scripts.lib.mod_scanner import scan_mods_directory
from scripts.lib.presets import apply_preset, create_preset, list_presets
from scripts.lib.settings import resolve_mods_root
from scripts.lib.stats import dashboard_stats, entities_with_counts
from scripts.lib.taxonomy_index import load_taxonomy_index

_log = logging.getLogger(__name__)

# Finished scan jobs kept for polling; older ones are dropped first
SCAN_JOB_HISTORY = 20

# Checked in order; subclasses before their bases
_ERROR_STATUS = (
    (NotFoundError, 404),
    (ConflictError, 409),
    (FolderMissingError, 409),
    (ArchiveFormatError, 400),
    (ConfigurationError, 400),
    (BatchOperationError, 500),
)


class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str


class EntityOut(BaseModel):
    id: int
    name: str
    slug: str
    details: Optional[str] = None
    base_image: Optional[str] = None
    total_mods: int
    enabled_mods: int


class AssetOut(BaseModel):
    id: int
    entity_id: int
    name: str
    description: Optional[str] = None
    folder_name: str
    image_filename: Optional[str] = None
    author: Optional[str] = None
    category_tag: Optional[str] = None
    is_enabled: bool
    disk_path: str


class ToggleOut(BaseModel):
    id: int
    is_enabled: bool


class DeleteOut(BaseModel):
    id: int
    deleted: bool
    folder_removed: bool


class ScanJobOut(BaseModel):
    job_id: str
    status: str
    message: Optional[str] = None
    error: Optional[str] = None
    events: List[Dict[str, Any]] = []


class ArchivePathIn(BaseModel):
    file_path: str


class ArchiveImportIn(BaseModel):
    file_path: str
    entity_slug: str
    mod_name: str
    description: Optional[str] = None
    author: Optional[str] = None
    category_tag: Optional[str] = None
    selected_root: Optional[str] = None
    preview_file: Optional[str] = None
    preset_ids: List[int] = []


class ImportOut(BaseModel):
    asset_id: int
    clean_path: str
    files_written: int


class PresetIn(BaseModel):
    name: str


class PresetOut(BaseModel):
    id: int
    name: str
    is_favorite: bool
    asset_count: int


class ApplyOut(BaseModel):
    total: int
    processed: int
    changed: int
    message: str


class StatsOut(BaseModel):
    total_mods: int
    enabled_mods: int
    disabled_mods: int
    missing_mods: int
    uncategorized_mods: int
    category_counts: Dict[str, int]


@dataclass
class ScanJob:
    id: str
    sink: RecordingSink = field(default_factory=RecordingSink)
    status: str = "running"
    message: Optional[str] = None
    error: Optional[str] = None


def _remember_job(jobs: Dict[str, ScanJob], job: ScanJob) -> None:
    jobs[job.id] = job
    finished = [j for j in jobs.values() if j.status != "running"]
    for old in finished[:max(0, len(finished) - SCAN_JOB_HISTORY)]:
        del jobs[old.id]


def get_store(request: Request) -> CatalogStore:
    return request.app.state.store


def get_mods_root(request: Request) -> Path:
    return resolve_mods_root(request.app.state.store, request.app.state.mods_root)


def _run_scan(store: CatalogStore, mods_root: Path, job: ScanJob) -> None:
    bus = EventBus()
    bus.subscribe_all(job.sink)
    try:
        summary = scan_mods_directory(store, mods_root, bus)
    except BatchOperationError as e:
        job.status = "failed"
        job.message = e.summary.message() if e.summary is not None else None
        job.error = e.itemized()
        return
    except Exception as e:
        job.status = "failed"
        job.error = str(e)
        _log.exception("Scan job %s failed", job.id)
        raise
    job.status = "completed"
    job.message = summary.message()


def create_app(db_url: Optional[str] = None, mods_root: Optional[str] = None) -> FastAPI:
    """Build the API; the catalog store and worker pool live for the app's lifetime."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store = CatalogStore(db_url)
        app.state.mods_root = mods_root
        app.state.runner = BackgroundRunner()
        app.state.scan_jobs = {}
        try:
            yield
        finally:
            app.state.runner.shutdown(wait=True)
            app.state.store.dispose()

    app = FastAPI(title="Mod Catalog Manager API", version="0.1.0", lifespan=lifespan)

    # CORS for local dev (adjust later as needed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CatalogError)
    async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
        status = next((code for cls, code in _ERROR_STATUS if isinstance(exc, cls)), 400)
        detail = exc.itemized() if isinstance(exc, BatchOperationError) else str(exc)
        return JSONResponse(status_code=status, content={"detail": detail})

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/categories", response_model=List[CategoryOut])
    def categories(store: CatalogStore = Depends(get_store)):
        with store.session() as session:
            rows = session.execute(
                select(models.Category.id, models.Category.name, models.Category.slug)
                .order_by(models.Category.name)
            ).all()
        return [CategoryOut(id=r[0], name=r[1], slug=r[2]) for r in rows]

    @app.get("/categories/{slug}/entities", response_model=List[EntityOut])
    def category_entities(slug: str, store: CatalogStore = Depends(get_store), root: Path = Depends(get_mods_root)):
        return [EntityOut(**asdict(e)) for e in entities_with_counts(store, root, slug)]

    @app.get("/entities/{slug}/assets", response_model=List[AssetOut])
    def entity_assets(slug: str, store: CatalogStore = Depends(get_store), root: Path = Depends(get_mods_root)):
        return [AssetOut(**asdict(a)) for a in list_assets_for_entity(store, root, slug)]

    @app.post("/assets/{asset_id}/toggle", response_model=ToggleOut)
    def toggle(asset_id: int, store: CatalogStore = Depends(get_store), root: Path = Depends(get_mods_root)):
        try:
            enabled = toggle_asset(store, root, asset_id)
        except FileExistsError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return ToggleOut(id=asset_id, is_enabled=enabled)

    @app.delete("/assets/{asset_id}", response_model=DeleteOut)
    def delete(asset_id: int, store: CatalogStore = Depends(get_store), root: Path = Depends(get_mods_root)):
        removed = delete_asset(store, root, asset_id)
        return DeleteOut(id=asset_id, deleted=True, folder_removed=removed)

    @app.post("/scan", response_model=ScanJobOut, status_code=202)
    def start_scan(request: Request, store: CatalogStore = Depends(get_store), root: Path = Depends(get_mods_root)):
        job = ScanJob(id=uuid.uuid4().hex)
        _remember_job(request.app.state.scan_jobs, job)
        request.app.state.runner.submit(_run_scan, store, root, job)
        return ScanJobOut(job_id=job.id, status=job.status)

    @app.get("/scan/{job_id}", response_model=ScanJobOut)
    def scan_status(job_id: str, request: Request):
        job = request.app.state.scan_jobs.get(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Scan job not found")
        events = [{"name": name, "payload": jsonable_encoder(payload)} for name, payload in list(job.sink.events)]
        return ScanJobOut(job_id=job.id, status=job.status, message=job.message, error=job.error, events=events)

    @app.post("/archives/analyze")
    def analyze(body: ArchivePathIn, store: CatalogStore = Depends(get_store)) -> dict:
        path = Path(body.file_path)
        if not path.is_file():
            raise HTTPException(status_code=404, detail=f"Archive not found: {path}")
        with store.session() as session:
            index = load_taxonomy_index(session)
        analysis = analyze_archive(path, index)
        out = analysis.to_dict()
        out["likely_roots"] = analysis.likely_roots
        return out

    @app.post("/archives/import", response_model=ImportOut, status_code=201)
    def import_(body: ArchiveImportIn, store: CatalogStore = Depends(get_store), root: Path = Depends(get_mods_root)):
        path = Path(body.file_path)
        if not path.is_file():
            raise HTTPException(status_code=404, detail=f"Archive not found: {path}")
        req = ImportRequest(
            entity_slug=body.entity_slug,
            mod_name=body.mod_name,
            description=body.description,
            author=body.author,
            category_tag=body.category_tag,
            selected_root=body.selected_root,
            preview_file=Path(body.preview_file) if body.preview_file else None,
            preset_ids=body.preset_ids,
        )
        result = import_archive(store, root, path, req)
        return ImportOut(asset_id=result.asset_id, clean_path=result.clean_path, files_written=result.files_written)

    @app.get("/presets", response_model=List[PresetOut])
    def presets(store: CatalogStore = Depends(get_store)):
        return [PresetOut(**asdict(p)) for p in list_presets(store)]

    @app.post("/presets", response_model=PresetOut, status_code=201)
    def new_preset(body: PresetIn, store: CatalogStore = Depends(get_store), root: Path = Depends(get_mods_root)):
        preset_id = create_preset(store, root, body.name)
        view = next(p for p in list_presets(store) if p.id == preset_id)
        return PresetOut(**asdict(view))

    @app.post("/presets/{preset_id}/apply", response_model=ApplyOut)
    def apply(preset_id: int, store: CatalogStore = Depends(get_store), root: Path = Depends(get_mods_root)):
        summary = apply_preset(store, root, preset_id)
        return ApplyOut(total=summary.total, processed=summary.processed, changed=summary.changed,
                        message=summary.message())

    @app.get("/stats", response_model=StatsOut)
    def stats(store: CatalogStore = Depends(get_store), root: Path = Depends(get_mods_root)):
        return StatsOut(**asdict(dashboard_stats(store, root)))

    return app


app = create_app()
