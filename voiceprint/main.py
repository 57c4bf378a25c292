import logging
import os

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from voiceprint.config import load_config
from voiceprint.dsp import InvalidInputError, compare_buffers_async
from voiceprint.engine import analyze_buffer, read_buffer, summarize_report
from voiceprint.models import AnalysisResponse, CompareResponse

logger = logging.getLogger("voiceprint")

config = load_config()

app = FastAPI(title="Voiceprint DSP Engine")

# Comma-separated list; defaults cover local development of the studio UI.
_origins = os.getenv("VOICEPRINT_CORS_ORIGINS", "http://localhost:3000")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in _origins.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _decode(file: UploadFile, field_name: str):
    try:
        return read_buffer(file)
    except InvalidInputError as exc:
        logger.warning("[API] Unusable audio in %s: %s", field_name, exc)
        raise HTTPException(status_code=400, detail=f"Unusable audio in {field_name}: {exc}") from exc
    except Exception as exc:
        logger.warning("[API] Failed to decode %s: %s", field_name, exc)
        raise HTTPException(status_code=400, detail=f"Failed to read audio in {field_name}: {exc}") from exc
    finally:
        try:
            file.file.close()
        except Exception:  # pragma: no cover - best effort
            pass


@app.get("/health")
async def health():
    """Lightweight health endpoint for uptime checks."""

    return {"status": "ok"}


@app.post("/analyze", response_model=AnalysisResponse)
async def analyze(file: UploadFile = File(...)):
    """Return loudness plus the voiceprint feature set of one recording."""

    buffer = _decode(file, "file")
    return analyze_buffer(buffer, config)


@app.post("/compare", response_model=CompareResponse)
async def compare(file_a: UploadFile = File(...), file_b: UploadFile = File(...)):
    """Score how alike two recordings sound.

    Only undecodable uploads are rejected; a comparison that fails inside
    the engine comes back as the all-zero report.
    """

    buffer_a = _decode(file_a, "file_a")
    buffer_b = _decode(file_b, "file_b")
    report = await compare_buffers_async(buffer_a, buffer_b, config)
    return summarize_report(report)
