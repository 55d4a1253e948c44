"""
HTTP API.

    GET  /         usage banner
    GET  /health   liveness check
    POST /pitch    multipart form field "file" (WAV or other soundfile format)
                   optional query parameter "tonic" (Hz) adds a swara label

Run with:
    swarapitch-serve --port 3000
or:
    uvicorn swarapitch.server:create_app --factory --port 3000

No app object is built at import time; configuration is loaded only when
create_app() runs.
"""

import argparse
import logging
from typing import Optional

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from .config import ConfigurationError, EstimatorConfig, load_config
from .notes import map_frequency_to_label
from .service import PitchService
from .sound import AudioDecodeError, SampleBuffer

logger = logging.getLogger(__name__)


def create_app(config: Optional[EstimatorConfig] = None) -> FastAPI:
    """
    Build the API bound to one estimator configuration.

    Args:
        config: Estimator configuration (defaults to load_config())
    """
    service = PitchService(config if config is not None else load_config())

    app = FastAPI(title="swarapitch", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.pitch_service = service

    @app.get("/", response_class=PlainTextResponse)
    def root():
        return "Server running. POST /pitch with form-data 'file' = WAV."

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/pitch")
    async def pitch(
        file: Optional[UploadFile] = File(None),
        tonic: Optional[float] = Query(None, gt=0),
    ):
        if file is None:
            raise HTTPException(status_code=400, detail="No file uploaded")
        payload = await file.read()

        try:
            buffer = SampleBuffer.from_bytes(payload)
        except AudioDecodeError as exc:
            logger.info("Rejected upload %r: %s", file.filename, exc)
            raise HTTPException(status_code=400, detail="Could not decode audio") from exc
        except Exception as exc:
            logger.exception("Audio decode failed for %r", file.filename)
            raise HTTPException(status_code=500, detail="Failed to process audio") from exc

        try:
            estimate = await run_in_threadpool(service.estimate, buffer)
        except Exception as exc:
            logger.exception("Pitch detection error")
            raise HTTPException(status_code=500, detail="Failed to process audio") from exc

        body = estimate.to_dict()
        if tonic is not None:
            body["note"] = (map_frequency_to_label(estimate.frequency, tonic).to_dict()
                            if estimate.frequency is not None else None)
        return body

    return app


def main(argv=None):
    """Entry point for swarapitch-serve."""
    import uvicorn

    parser = argparse.ArgumentParser(description="Serve the swarapitch HTTP API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=3000, help="Port")
    parser.add_argument("--config", help="TOML config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config(args.config)
    except ConfigurationError as exc:
        parser.error(str(exc))

    app = create_app(config)
    logger.info("Pitch API listening on http://%s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)
