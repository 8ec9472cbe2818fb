import logging
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from image_draw.config import get_settings
from image_draw.schemas import DrawResult, ImageRecord, SelectionStatus, UploadImages
from image_draw.selection import ImageDrawer, selection_status, validate_groups
from image_draw.storage import ImageNotFoundError, build_store
from image_draw.utils import validate_image_payload

# ------------------------------------------------------
# ENV & SETUP
# ------------------------------------------------------
settings = get_settings()

# Configure logging
handlers = [logging.StreamHandler()]
if settings.log_file:
    handlers.insert(0, logging.FileHandler(settings.log_file))
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=handlers,
)
logger = logging.getLogger(__name__)

store = build_store(settings)
drawer = ImageDrawer(
    store,
    advance_delay_ms=settings.group_advance_delay_ms,
    max_groups=settings.max_groups,
)

app = FastAPI(title="Random Image Draw API", version="1.0")

# CORS middleware for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------------------------------------
# DEPENDENCIES
# ------------------------------------------------------
def get_app_settings():
    return settings


def get_store():
    return store


def get_drawer():
    return drawer


# ------------------------------------------------------
# RESPONSE HELPERS
# ------------------------------------------------------
def success_response(message, data=None):
    return {"status": True, "message": message, "data": data or {}}


def error_response(message):
    return {"status": False, "message": message, "data": {}}


def validate_uploads(uploads):
    for upload in uploads:
        validate_image_payload(upload.name, upload.data)


def format_validation_errors(errors):
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        path = ""
        for p in loc:
            path += f"[{p}]" if p.isdigit() else (f".{p}" if path else p)
        parts.append(f'{err.get("msg")} at "{path}"' if path else err.get("msg"))
    return "Validation error: " + "; ".join(parts)


# ------------------------------------------------------
# EXCEPTION HANDLERS
# ------------------------------------------------------
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = format_validation_errors(exc.errors())
    logger.warning(f"Client Error: {message}")
    return JSONResponse(status_code=400, content=error_response(message))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code < 500:
        logger.warning(f"Client Error: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=error_response(str(exc.detail)))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled Error: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content=error_response("Internal Server Error. Please try again later.")
    )


# ------------------------------------------------------
# API ROUTES
# ------------------------------------------------------
@app.get("/api/images", response_model=List[ImageRecord])
async def list_images(store=Depends(get_store)):
    return await run_in_threadpool(store.list)


@app.post("/api/images", status_code=201, response_model=List[ImageRecord])
async def upload_images(
    payload: UploadImages,
    store=Depends(get_store),
    app_settings=Depends(get_app_settings),
):
    limit = app_settings.max_upload_images
    if limit and len(payload.images) > limit:
        raise HTTPException(
            status_code=400,
            detail=f"Maximum {limit} images allowed per upload",
        )

    if app_settings.validate_image_data:
        try:
            await run_in_threadpool(validate_uploads, payload.images)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Invalid image: {e}")

    created = await run_in_threadpool(store.create, payload.images)
    logger.info(f"Uploaded {len(created)} image(s)")
    return created


@app.get("/api/images/status", response_model=SelectionStatus)
async def get_status(store=Depends(get_store)):
    images = await run_in_threadpool(store.list)
    return selection_status(images, store.quota)


@app.post("/api/images/draw", response_model=DrawResult)
async def draw_image(
    group_id: int = Query(0, alias="groupId"),
    total_groups: int = Query(1, alias="totalGroups"),
    drawer=Depends(get_drawer),
):
    try:
        validate_groups(group_id, total_groups, drawer.max_groups)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        return await run_in_threadpool(drawer.draw, group_id, total_groups)
    except ImageNotFoundError as e:
        # Image removed between listing and selecting
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/images/reset", response_model=List[ImageRecord])
async def reset_images(store=Depends(get_store)):
    await run_in_threadpool(store.reset)
    logger.info(f"Images reset (policy={store.reset_policy})")
    return await run_in_threadpool(store.list)


@app.get("/api/images/{image_id}", response_model=ImageRecord)
async def get_image(image_id: int, store=Depends(get_store)):
    try:
        return await run_in_threadpool(store.get, image_id)
    except ImageNotFoundError:
        raise HTTPException(status_code=404, detail="Image not found")


@app.patch("/api/images/{image_id}/select", response_model=ImageRecord)
async def select_image(
    image_id: int,
    group_id: int = Query(0, alias="groupId", ge=0),
    store=Depends(get_store),
):
    try:
        image = await run_in_threadpool(store.select, image_id, group_id)
    except ImageNotFoundError:
        raise HTTPException(status_code=404, detail="Image not found")
    logger.info(f"Image selected: ID={image.id}, group={group_id}, count={image.selected_count}")
    return image


@app.delete("/api/images/{image_id}")
async def delete_image(image_id: int, store=Depends(get_store)):
    try:
        await run_in_threadpool(store.delete, image_id)
    except ImageNotFoundError:
        raise HTTPException(status_code=404, detail="Image not found")
    logger.info(f"Image deleted: ID={image_id}")
    return success_response("Image deleted", {"id": image_id})


@app.get("/")
def home():
    return success_response("Random Image Draw API is running")


def run():
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
