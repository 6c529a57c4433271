"""
Smoke Flow: register, parse, generate, render
Validates the API end to end against a real PDF URL and the Gemini API.
"""
from __future__ import annotations

import json
import os
import re
import sys
from pathlib import Path
from typing import Any, Dict
from urllib.parse import unquote

from dotenv import load_dotenv
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1] / "api"))

from testgen.main import app  # noqa: E402

DEFAULT_ORIGIN = "http://localhost:3000"
DEFAULT_OUTPUT = "smoke_test.docx"


def require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise SystemExit(f"Missing required env: {name}")
    return value


def parse_filename(content_disposition: str) -> str:
    match = re.search(r"filename\*=UTF-8''([^;]+)", content_disposition)
    if not match:
        raise SystemExit("Could not parse filename from content-disposition")
    return unquote(match.group(1).strip())


def assert_json_response(response, label: str) -> Dict[str, Any]:
    if response.status_code != 200:
        raise SystemExit(f"{label} failed: {response.status_code} {response.text}")
    if "application/json" not in response.headers.get("content-type", ""):
        raise SystemExit(f"{label} did not return JSON")
    return response.json()


def main() -> None:
    load_dotenv()
    require_env("GEMINI_API_KEY")
    pdf_url = require_env("TESTGEN_PDF_URL")
    origin = os.getenv("TESTGEN_ORIGIN", DEFAULT_ORIGIN)

    client = TestClient(app)

    # Connectivity Check: /health
    health_body = assert_json_response(client.get("/health", headers={"Origin": origin}), "/health")
    if health_body.get("status") != "healthy":
        raise SystemExit("/health did not report healthy")

    # CORS Validation
    cors_response = client.options(
        "/health",
        headers={
            "Origin": origin,
            "Access-Control-Request-Method": "GET",
        },
    )
    cors_origin = cors_response.headers.get("access-control-allow-origin")
    if cors_origin not in ("*", origin):
        raise SystemExit(f"CORS header mismatch: {cors_origin}")

    # Flow Validation: register + parse
    material = assert_json_response(
        client.post("/api/materials", json={"title": "Smoke test material", "file_url": pdf_url}),
        "/api/materials",
    )
    material_id = material["material_id"]
    parse_body = assert_json_response(client.post(f"/api/materials/{material_id}/parse"), "/parse")

    # Flow Validation: generate
    test_config = {
        "title": "Smoke Test",
        "questions": [
            {"type": "mcq", "quantity": 5, "difficulty": "easy"},
            {"type": "true_false", "quantity": 3, "difficulty": "medium"},
            {"type": "long", "quantity": 1, "difficulty": "hard"},
        ],
    }
    generate_body = assert_json_response(
        client.post("/api/tests/generate", json={"material_id": material_id, "test_config": test_config}),
        "/api/tests/generate",
    )
    if not generate_body.get("test"):
        raise SystemExit("/api/tests/generate missing test content")

    # Render DOCX
    output_name = os.getenv("TESTGEN_OUTPUT", DEFAULT_OUTPUT)
    render_response = client.post(
        "/api/tests/render",
        json={"title": "Smoke Test", "content": generate_body["test"], "file_name": output_name},
    )
    if render_response.status_code != 200:
        raise SystemExit(f"/api/tests/render failed: {render_response.status_code}")
    if (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
        not in render_response.headers.get("content-type", "")
    ):
        raise SystemExit("/api/tests/render did not return DOCX")

    output_path = Path(parse_filename(render_response.headers.get("content-disposition", "")))
    output_path.write_bytes(render_response.content)

    report = {
        "health": "ok",
        "cors": "ok",
        "parse": {key: parse_body[key] for key in ("page_count", "pages_read", "truncated")},
        "generate": {
            "total_points": generate_body["total_points"],
            "sections": [section["kind"] for section in generate_body["normalized"]["sections"]],
            "warnings": generate_body["warnings"],
        },
        "render": str(output_path),
    }
    print(json.dumps(report, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
