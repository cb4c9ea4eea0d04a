import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from karigardesk.errors import NotFoundError
from karigardesk.models.design import DesignImageInfo, DesignMappingIn, DesignMappingRead
from karigardesk.models.parsing import BatchResult
from karigardesk.services import ingestion
from karigardesk.services.images import expand_uploads
from karigardesk.services.mapping import ResolvedNames, UnmappedGroup, enrich_orders, group_unmapped, index_mappings, resolve_design
from karigardesk.services.normalizer import normalize_design_code
from karigardesk.services.store import get_store

logger = logging.getLogger(__name__)
router = APIRouter()


class ReassignRequest(BaseModel):
    karigar_name: str


class KarigarIn(BaseModel):
    name: str


@router.get("/designs", response_model=List[DesignMappingRead])
def list_designs(store=Depends(get_store)):
    return store.list_design_mappings()


@router.delete("/designs")
def clear_designs(store=Depends(get_store)):
    deleted = store.clear_design_mappings()
    return {"deleted": deleted, "invalidates": [("designs", "*")]}


@router.get("/designs/unmapped", response_model=List[UnmappedGroup])
def unmapped_designs(store=Depends(get_store)):
    """Design codes whose orders still lack a generic name or karigar after enrichment."""
    orders = enrich_orders(store.list_orders(), store.list_design_mappings())
    return group_unmapped(orders)


@router.get("/designs/images", response_model=List[DesignImageInfo])
def list_design_images(store=Depends(get_store)):
    return store.list_design_images()


@router.post("/designs/images", response_model=BatchResult)
async def upload_design_images(files: List[UploadFile] = File(...), store=Depends(get_store)):
    """Bulk upload: each file name (or each picture inside a .zip) names its design code."""
    uploads = []
    for f in files:
        content = await f.read()
        uploads.extend(expand_uploads(f.filename or "", content))
    result = ingestion.save_design_images(store, uploads)
    return result


@router.get("/designs/{design_code}", response_model=ResolvedNames)
def resolve(design_code: str, store=Depends(get_store)):
    resolved = resolve_design(design_code, index_mappings(store.list_design_mappings()))
    if resolved is None:
        raise HTTPException(status_code=404, detail=f"Design {normalize_design_code(design_code)} is unmapped")
    return resolved


@router.put("/designs/{design_code}")
def upsert_design(design_code: str, payload: DesignMappingIn, store=Depends(get_store)):
    code = normalize_design_code(design_code)
    if not code or not payload.generic_name.strip() or not payload.karigar_name.strip():
        raise HTTPException(status_code=400, detail="design code, generic_name and karigar_name are required")
    store.upsert_design_mapping(code, payload.generic_name, payload.karigar_name)
    return {"design_code": code, "invalidates": [("design", code), ("karigar", payload.karigar_name.strip())]}


@router.post("/designs/{design_code}/reassign")
def reassign_design(design_code: str, req: ReassignRequest, store=Depends(get_store)):
    code = normalize_design_code(design_code)
    if not req.karigar_name.strip():
        raise HTTPException(status_code=400, detail="karigar_name is required")
    try:
        updated = store.reassign_design(code, req.karigar_name)
    except NotFoundError:
        logger.warning("Reassign requested for unmapped design %s", code)
        raise
    return {"updated": updated, "invalidates": [("design", code), ("karigar", req.karigar_name.strip())]}


@router.post("/designs/{design_code}/image", response_model=DesignImageInfo)
async def upload_design_image(design_code: str, file: UploadFile = File(...), store=Depends(get_store)):
    content = await file.read()
    return store.save_design_image(design_code, content, file.filename or "")


@router.get("/designs/{design_code}/image")
def get_design_image(design_code: str, store=Depends(get_store)):
    blob = store.get_design_image(design_code)
    return Response(content=blob.data, media_type=blob.content_type)


@router.get("/karigars", response_model=List[str])
def list_karigars(store=Depends(get_store)):
    return store.list_karigars()


@router.post("/karigars", status_code=201)
def add_karigar(payload: KarigarIn, store=Depends(get_store)):
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="name is required")
    store.add_karigar(name)
    return {"name": name, "invalidates": [("karigar", name)]}
