from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
import logging, os

from certificates import (
    CertificateResult,
    Submission,
    describe_validation_errors,
    get_asset_paths,
    verify_and_generate_certificate,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Certificate Verification")


def _allowed_origins():
    raw = os.getenv("ALLOWED_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def _cors_options():
    origins = _allowed_origins()
    # browsers refuse credentialed responses for a wildcard origin
    return {"allow_origins": origins, "allow_credentials": "*" not in origins}


app.add_middleware(
    CORSMiddleware,
    **_cors_options(),
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------- Error handlers -----------

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = describe_validation_errors(list(exc.errors()))
    logger.info("Rejected malformed request to %s: %s", request.url.path, message)
    return JSONResponse(status_code=422, content={"success": False, "message": message})


# ----------- Endpoints -----------

@app.post(
    "/api/verify-and-generate",
    response_model=CertificateResult,
    response_model_exclude_none=True,
)
def verify_and_generate(submission: Submission):
    try:
        return verify_and_generate_certificate(submission)
    except Exception as e:
        logger.exception("API Error")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": str(e) or "Failed to process request"},
        )


@app.get("/health")
def health_check():
    paths = get_asset_paths()
    return {
        "status": "ok",
        "assets": {kind: os.path.isfile(path) for kind, path in paths._asdict().items()},
    }


@app.get("/template")
def get_template():
    """
    Returns the blank certificate template PDF for preview.
    """
    template_path = get_asset_paths().template
    if not os.path.exists(template_path):
        raise HTTPException(status_code=404, detail="Template file not found")

    return FileResponse(
        path=template_path,
        media_type="application/pdf",
        filename=os.path.basename(template_path),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "") == "1",
    )
