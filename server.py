# server.py
import logging
import mimetypes
import os
import tempfile
from contextlib import asynccontextmanager, suppress
from pathlib import Path

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates
import uvicorn

import config
from decoder import read_barcode
from nutrition import NutritionFacts, format_amount
from off_client import OpenFoodFactsClient, ProductLookupError

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
templates.env.filters["amount"] = format_amount

NOT_AN_IMAGE = "Please upload only images."
TOO_LARGE = "Image is too large."
UNREADABLE = "could not read file, make sure it is a valid image!"

# Client extensions kept for the temp file; anything else comes from the content type.
IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".tif", ".tiff"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.off_client = OpenFoodFactsClient.from_config()
    try:
        yield
    finally:
        await app.state.off_client.aclose()


app = FastAPI(title="Pana Fit", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_off_client(request: Request) -> OpenFoodFactsClient:
    return request.app.state.off_client


def _message(request: Request, text: str) -> HTMLResponse:
    return templates.TemplateResponse(request, "message.html", {"message": text})


def _temp_suffix(file: UploadFile) -> str:
    # Keep the extension to help opencv; never reuse the client's filename as a path.
    suffix = os.path.splitext(file.filename or "")[1].lower()
    if suffix in IMAGE_SUFFIXES:
        return suffix
    ct = (file.content_type or "").split(";")[0].strip()
    return mimetypes.guess_extension(ct) or ".jpg"


@app.get("/", response_class=HTMLResponse)
async def index(request: Request):
    return templates.TemplateResponse(request, "index.html")


@app.get("/sanity", response_class=PlainTextResponse)
async def sanity():
    return "Server is up and running!\n"


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.post("/upload", response_class=HTMLResponse)
async def upload(
    request: Request,
    file: UploadFile = File(...),
    off: OpenFoodFactsClient = Depends(get_off_client),
):
    if not (file.content_type or "").startswith("image/"):
        return _message(request, NOT_AN_IMAGE)

    contents = await file.read()
    if len(contents) > config.MAX_UPLOAD_BYTES:
        logger.info("Rejected %r: %d bytes", file.filename, len(contents))
        return _message(request, TOO_LARGE)

    with tempfile.NamedTemporaryFile(delete=False, suffix=_temp_suffix(file)) as tmp:
        tmp_path = tmp.name
        try:
            tmp.write(contents)
        except OSError:
            tmp.close()
            os.unlink(tmp_path)
            raise

    try:
        code = await run_in_threadpool(read_barcode, tmp_path)
    except ValueError as e:
        logger.warning("Barcode decode failed for %r: %s", file.filename, e)
        return _message(request, UNREADABLE)
    finally:
        with suppress(FileNotFoundError):
            os.unlink(tmp_path)

    try:
        product = await off.product(code)
    except ProductLookupError as e:
        logger.warning("Product lookup failed for %s: %s", code, e)
        return _message(request, UNREADABLE)

    facts = NutritionFacts.from_product(product, config.OFF_IMAGE_LANGUAGE)
    return templates.TemplateResponse(request, "nutrition_facts.html", {"facts": facts})


def main():
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
