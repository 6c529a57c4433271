"""
Main FastAPI Application
Controller layer that drives the test generation pipeline.
"""
import logging
from typing import Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, Header, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware

from testgen.config import LOG_LEVEL
from testgen.errors import (
    ContentNotReadyError,
    GenerationError,
    GenerationTimeout,
    IngestionError,
    MaterialNotFoundError,
    PipelineError,
)
from testgen.schemas import (
    GenerateTestRequest,
    MaterialCreateRequest,
    ProcessingStatus,
    RenderTestRequest,
)
from testgen.services.ai_engine import get_client
from testgen.services.ingestor import ensure_pdf
from testgen.services.pipeline import generate_test_content, ingest_material, render_test
from testgen.store import InMemoryMaterialStore, MaterialStore

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

_store = InMemoryMaterialStore()


def get_store() -> MaterialStore:
    return _store


def get_api_key_header(
    x_gemini_api_key: Optional[str] = Header(default=None, alias="X-Gemini-API-Key"),
) -> Optional[str]:
    return x_gemini_api_key


def error_detail(error: PipelineError, **extra) -> dict:
    return {"error": str(error), "code": error.code, **extra}


# Initialize FastAPI App
app = FastAPI(
    title="Test Gen API",
    description="AI-powered test generation from PDF course materials",
    version="1.0.0"
)

# CORS Middleware (Allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def read_root():
    """Return API status info."""
    return {"message": "Test Gen API is running."}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "Test Gen API"}


@app.post("/api/materials")
async def create_material(request: MaterialCreateRequest, store: MaterialStore = Depends(get_store)):
    """Register a source document for later parsing."""
    try:
        ensure_pdf(request.media_type, request.file_url)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    material = store.create(request.title, request.file_url, request.media_type)
    return {"material_id": material.id, "status": material.status}


@app.post("/api/materials/{material_id}/parse")
async def parse_material(material_id: str, store: MaterialStore = Depends(get_store)):
    """
    Extract text from a registered material.

    Returns:
        JSON with the final status and extracted content length.
    """
    try:
        material = await ingest_material(material_id, store)
    except MaterialNotFoundError as e:
        raise HTTPException(status_code=404, detail=error_detail(e))
    except IngestionError as e:
        raise HTTPException(
            status_code=500,
            detail=error_detail(e, status=ProcessingStatus.FAILED.value),
        )

    extracted = material.extracted
    return {
        "success": True,
        "material_id": material.id,
        "status": material.status,
        "content_length": len(extracted.text),
        "page_count": extracted.page_count,
        "pages_read": extracted.pages_read,
        "truncated": extracted.truncated,
    }


@app.get("/api/materials/{material_id}/parse-status")
async def parse_status(material_id: str, store: MaterialStore = Depends(get_store)):
    """Report the ingestion status of a material."""
    material = store.get(material_id)
    if material is None:
        raise HTTPException(
            status_code=404,
            detail=error_detail(MaterialNotFoundError(f"Material '{material_id}' not found")),
        )
    return {
        "material_id": material.id,
        "status": material.status,
        "content_length": len(material.extracted.text) if material.extracted else 0,
    }


@app.post("/api/tests/generate")
async def generate_test(
    request: GenerateTestRequest,
    api_key: Optional[str] = Depends(get_api_key_header),
    store: MaterialStore = Depends(get_store),
):
    """
    Generate a test from a parsed material.

    Returns:
        JSON with the normalized test markdown, its parsed model, material
        info, total points and any quantity warnings.
    """
    try:
        material = store.get(request.material_id)
        if material is None:
            raise MaterialNotFoundError(f"Material '{request.material_id}' not found")

        client = get_client(api_key)
        result = await generate_test_content(material, request.test_config, client=client)

        return {
            "success": True,
            "test": result.document.normalized_text,
            "normalized": result.model.model_dump(),
            "material": {"title": material.title, "file_url": material.file_url},
            "total_points": result.total_points,
            "warnings": result.warnings,
        }

    except MaterialNotFoundError as e:
        raise HTTPException(status_code=404, detail=error_detail(e))
    except ContentNotReadyError as e:
        raise HTTPException(status_code=400, detail=error_detail(e))
    except GenerationTimeout as e:
        raise HTTPException(status_code=504, detail=error_detail(e, guidance=e.guidance))
    except GenerationError as e:
        raise HTTPException(status_code=502, detail=error_detail(e))
    except ValueError as e:
        # API Key or configuration errors
        raise HTTPException(status_code=500, detail=f"Configuration error: {str(e)}")
    except Exception as e:
        logger.exception("Error during test generation")
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@app.post("/api/tests/render")
async def render_docx(request: RenderTestRequest):
    """Render edited test markdown to .docx and return the file."""
    document = render_test(
        title=request.title,
        content=request.content,
        description=request.description,
        file_name=request.file_name,
    )
    return Response(
        content=document.content,
        media_type=document.media_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(document.file_name)}",
        },
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
