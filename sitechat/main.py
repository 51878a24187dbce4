# Entry point for the FastAPI app
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
import logging
from dataclasses import fields
from typing import Optional

from . import security
from .chat import InvalidInput, validate_message
from .models.records import SourceType
from .models.site_content import PUBLISHED, Post, Product, ProductVariation, SiteInfo, Term
from .services import Services, build_services
from .site_content import InMemorySiteContent

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

RATE_LIMITED_REPLY = "Demasiadas solicitudes. Intenta de nuevo en unos segundos."


async def _read_json(request: Request) -> dict:
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    return payload


def _optional_int(value) -> Optional[int]:
    try:
        value = int(value)
    except (TypeError, ValueError):
        return None
    return value or None


def _content_from(cls, payload: dict, require_id: bool = True):
    """Build a site content dataclass from a pushed JSON object."""
    if require_id and _optional_int(payload.get("id")) is None:
        raise HTTPException(status_code=400, detail=f"{cls.__name__} requires a numeric id")
    names = {f.name for f in fields(cls)}
    values = {k: v for k, v in payload.items() if k in names}
    if require_id:
        values["id"] = int(payload["id"])
    try:
        if cls is Product:
            values["variations"] = [
                ProductVariation(attributes=dict(v.get("attributes") or {}), price=str(v.get("price") or ""))
                for v in values.get("variations") or [] if isinstance(v, dict)
            ]
        return cls(**values)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid {cls.__name__}: {e}")


def _pushable_site(svc: Services) -> InMemorySiteContent:
    if not isinstance(svc.site, InMemorySiteContent):
        raise HTTPException(status_code=501, detail="This site backend does not accept pushed content")
    return svc.site


async def _refresh_post(svc: Services, post_id: int) -> dict:
    """Re-index a pushed post; rows of a post that is no longer indexable are dropped."""
    svc.orchestrator.snapshot_cache.invalidate()
    result = await svc.indexer.index_post(post_id)
    if result is None:
        removed = svc.indexer.remove_post(post_id)
        logger.info(f"[ADMIN] Post {post_id} stored but not indexable, removed {removed} rows")
        return {"id": post_id, "indexed": None, "removed": removed}
    return {"id": post_id, "indexed": result.to_dict()}


def create_app(services: Optional[Services] = None) -> FastAPI:
    app = FastAPI(title="sitechat")
    state = {"services": services}

    def get_services() -> Services:
        if state["services"] is None:
            state["services"] = build_services()
        return state["services"]

    def passkey() -> str:
        return get_services().config.get_str("admin_passkey")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/chat")
    async def chat(request: Request):
        svc = get_services()
        payload = await _read_json(request)

        try:
            message = validate_message(
                str(payload.get("message") or ""),
                svc.config.get_int("message_max_chars", 1000),
            )
        except InvalidInput as e:
            return JSONResponse(status_code=400, content={"error": str(e)})

        session_id = str(payload.get("session_id") or "").strip()
        authenticated = security.is_authenticated(request, passkey())
        identifier = session_id or security.get_client_ip(request)
        if not svc.rate_limiter.check(identifier, authenticated=authenticated):
            return JSONResponse(status_code=429, content={"error": RATE_LIMITED_REPLY})

        reply = await svc.orchestrator.process_message(
            message,
            current_post_id=_optional_int(payload.get("post_id")),
            current_url=str(payload.get("current_url") or "") or None,
            session_id=session_id or None,
        )
        return {"response": reply}

    @app.post("/admin/reindex")
    async def reindex(request: Request):
        security.require_admin(request, passkey())
        logger.info(f"[ADMIN] Full re-index requested from {security.get_client_ip(request)}")
        summary = await get_services().indexer.reindex_all()
        return summary.to_dict()

    @app.post("/admin/index/post/{post_id}")
    async def index_post(post_id: int, request: Request):
        security.require_admin(request, passkey())
        result = await get_services().indexer.index_post(post_id)
        if result is None:
            return JSONResponse(status_code=404, content={"error": "Post not found or not published"})
        return result.to_dict()

    @app.post("/admin/index/term/{taxonomy}/{term_id}")
    async def index_term(taxonomy: str, term_id: int, request: Request):
        security.require_admin(request, passkey())
        result = await get_services().indexer.index_term(term_id, taxonomy)
        if result is None:
            return JSONResponse(status_code=404, content={"error": "Term not found"})
        return result.to_dict()

    @app.post("/admin/documents/{source_id}")
    async def index_document(source_id: int, request: Request):
        security.require_admin(request, passkey())
        svc = get_services()
        payload = await _read_json(request)
        source_type = _source_type(payload.get("source_type") or SourceType.FILE.value)
        max_chunks = _optional_int(payload.get("max_chunks"))
        if max_chunks is None:
            max_chunks = svc.config.get_int("document_max_chunks", 0)
        result = await svc.indexer.index_document(
            source_id, str(payload.get("text") or ""), source_type, max_chunks
        )
        if result.chunks_total == 0:
            return JSONResponse(status_code=422, content=result.to_dict())
        return result.to_dict()

    @app.delete("/admin/documents/{source_id}")
    async def delete_document(source_id: int, request: Request, source_type: str = SourceType.FILE.value):
        security.require_admin(request, passkey())
        deleted = get_services().indexer.delete_document_embeddings(source_id, _source_type(source_type))
        return {"deleted": deleted}

    @app.put("/admin/content/site")
    async def push_site_info(request: Request):
        security.require_admin(request, passkey())
        svc = get_services()
        site = _pushable_site(svc)
        site.site_info = _content_from(SiteInfo, await _read_json(request), require_id=False)
        svc.orchestrator.snapshot_cache.invalidate()
        result = await svc.indexer.index_site_metadata()
        return result.to_dict()

    @app.post("/admin/content/posts")
    async def push_post(request: Request):
        security.require_admin(request, passkey())
        svc = get_services()
        site = _pushable_site(svc)
        post = _content_from(Post, await _read_json(request))
        site.add_post(post)
        logger.info(f"[ADMIN] Post {post.id} pushed ({post.post_type}, {post.status})")
        return await _refresh_post(svc, post.id)

    @app.post("/admin/content/products")
    async def push_product(request: Request):
        security.require_admin(request, passkey())
        svc = get_services()
        site = _pushable_site(svc)
        payload = await _read_json(request)
        product = _content_from(Product, payload)
        site.add_product(product, status=str(payload.get("status") or PUBLISHED))
        logger.info(f"[ADMIN] Product {product.id} pushed")
        return await _refresh_post(svc, product.id)

    @app.post("/admin/content/terms")
    async def push_term(request: Request):
        security.require_admin(request, passkey())
        svc = get_services()
        site = _pushable_site(svc)
        term = _content_from(Term, await _read_json(request))
        site.add_term(term)
        result = await svc.indexer.index_term(term.id, term.taxonomy)
        return {"id": term.id, "indexed": result.to_dict() if result else None}

    @app.delete("/admin/content/posts/{post_id}")
    async def delete_post(post_id: int, request: Request):
        security.require_admin(request, passkey())
        svc = get_services()
        _pushable_site(svc).remove_post(post_id)
        svc.orchestrator.snapshot_cache.invalidate()
        return {"deleted": svc.indexer.remove_post(post_id)}

    return app


def _source_type(value: str) -> SourceType:
    try:
        return SourceType(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown source type: {value}")


app = create_app()
