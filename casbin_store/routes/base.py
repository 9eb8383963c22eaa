from fastapi import APIRouter, HTTPException, Request

from .. import __version__, errors

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Store reachability: applied schema version and pool occupancy."""
    repo = request.app.state.repo
    try:
        applied = await repo.schema_status()
    except errors.StoreError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    out = {"status": "ok", "schema": applied[-1] if applied else None}
    stats = getattr(repo.source, "stats", None)
    if stats is not None:
        out["pool"] = stats()
    return out


@router.get("/version")
def version():
    return {"app": "casbin-store", "version": __version__}
