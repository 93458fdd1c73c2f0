"""
Oligoscreen Web API

FastAPI interface to the screening engine.
"""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Union
import logging
import uvicorn

from oligoscreen import __version__
from oligoscreen.analysis.screener import InvalidScreenInput, run_screening
from oligoscreen.config import get_config
from oligoscreen.io.fasta import clean_sequence
from oligoscreen.models.data_classes import AlignmentParams, ScreenParams, ScreenResult
from oligoscreen.models.enums import AnalysisMethod

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Oligoscreen",
    description="Degenerate oligonucleotide window screening",
    version=__version__,
)

# CORS for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Request/Response Models
# =============================================================================

def _clean_records(records: Dict[str, str]) -> Dict[str, str]:
    return {name: clean_sequence(seq, name) for name, seq in records.items()}


class ScreenRequest(BaseModel):
    template: str = Field(..., min_length=1, description="Template DNA sequence")
    template_name: str = Field("template", max_length=200)
    references: Dict[str, str] = Field(..., description="Reference sequences by name")
    exclusivity: Optional[Union[Dict[str, str], List[Dict[str, str]]]] = Field(
        None, description="Exclusivity sequences, one set or several"
    )
    params: ScreenParams = Field(default_factory=ScreenParams)
    alignment: AlignmentParams = Field(default_factory=AlignmentParams)
    workers: int = Field(1, ge=1, le=64)

    @field_validator('template')
    @classmethod
    def validate_template(cls, v: str) -> str:
        return clean_sequence(v, "template")

    @field_validator('references')
    @classmethod
    def validate_references(cls, v: Dict[str, str]) -> Dict[str, str]:
        return _clean_records(v)

    @field_validator('exclusivity')
    @classmethod
    def validate_exclusivity(cls, v):
        if v is None:
            return v
        if isinstance(v, dict):
            return _clean_records(v)
        return [_clean_records(records) for records in v]


class ReevaluateRequest(BaseModel):
    result: ScreenResult
    coverage_threshold: Optional[float] = Field(None, gt=0, le=100)
    ignore_count: Optional[int] = Field(None, ge=0)


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/api/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/api/info")
async def info():
    """Available analysis methods and default parameters."""
    config = get_config()
    return {
        "methods": [
            {"value": AnalysisMethod.NO_AMBIGUITIES.value, "label": "No ambiguities",
             "description": "One variant per distinct matched sequence"},
            {"value": AnalysisMethod.FIXED_AMBIGUITIES.value, "label": "Fixed ambiguities",
             "description": "Greedy cover with a per-variant ambiguity budget"},
            {"value": AnalysisMethod.INCREMENTAL.value, "label": "Incremental",
             "description": "Each variant covers a target share of what remains"},
        ],
        "defaults": {
            "alignment": config.alignment.model_dump(mode="json"),
            "screen": config.screen.model_dump(mode="json"),
        },
    }


# Plain def: FastAPI runs it in the threadpool, off the event loop
@app.post("/api/screen")
def screen(request: ScreenRequest):
    """Run a screening and return the full result grid."""
    try:
        result = run_screening(
            request.template,
            request.references,
            params=request.params,
            alignment=request.alignment,
            exclusivity=request.exclusivity,
            workers=request.workers,
            template_name=request.template_name,
        )
    except InvalidScreenInput as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.exception("Screening failed")
        raise HTTPException(status_code=500, detail=str(e))
    return result.model_dump(mode="json")


@app.post("/api/reevaluate")
async def reevaluate(request: ReevaluateRequest):
    """Apply a new coverage threshold and/or ignore count to a saved result."""
    result = request.result
    if request.coverage_threshold is not None:
        result = result.with_coverage_threshold(request.coverage_threshold)
    if request.ignore_count is not None:
        result = result.with_ignore_count(request.ignore_count)
    return result.model_dump(mode="json")


if __name__ == "__main__":
    config = get_config()
    print("Starting Oligoscreen API...")
    uvicorn.run(app, host=config.api_host, port=config.api_port)
