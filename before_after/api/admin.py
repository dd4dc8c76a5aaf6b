"""Admin endpoints for managing cards and loss GIFs."""

import logging
import time
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from ..config import Config
from ..database.operations import DatabaseOperations
from ..exceptions import FileSizeError, InvalidAPIKeyError, InvalidImageTypeError
from ..middleware.rate_limiter import admin_rate_limit, get_limiter
from ..middleware.validation import sanitize_filename
from ..models.api_models import (
    CardCreate,
    CardFields,
    CardResponse,
    LossGifCreate,
    LossGifFields,
    LossGifResponse,
    MessageResponse,
)
from ..utils.image_processor import process_image, validate_image_file
from ..utils.multipart_parser import UploadedFile, is_multipart, parse_multipart_form
from ..utils.object_storage import (
    ImageUrls,
    ObjectStorage,
    delete_images,
    upload_image_pair,
    upload_loss_gif_image_pair,
)

logger = logging.getLogger(__name__)

limiter = get_limiter()

ModelT = TypeVar("ModelT", bound=BaseModel)

CARD_FIELDS = ("title", "year", "month", "category", "sourceUrl")
LOSS_GIF_FIELDS = ("category", "streakThreshold")


def get_client_info(request: Request) -> tuple[str, str]:
    """Extract client IP and user agent from request."""
    # Try X-Forwarded-For header first (for proxies)
    client_ip = request.headers.get("x-forwarded-for")
    if client_ip:
        client_ip = client_ip.split(",")[0].strip()
    else:
        client_ip = request.client.host if request.client else "unknown"

    user_agent = request.headers.get("user-agent", "unknown")
    return client_ip, user_agent


def validate_admin_key(config: Config, key: str | None, client_ip: str) -> str:
    """Validate an admin API key and its IP restrictions.

    Returns:
        Identifier of the matching key ("key_<index>")

    Raises:
        InvalidAPIKeyError: If no keys are configured, the key is unknown, or
            the client IP is not allowed for it
    """
    if not config.security.admin_keys:
        raise InvalidAPIKeyError("Admin API is not configured")

    if not key:
        raise InvalidAPIKeyError("API key required")

    for idx, admin_key in enumerate(config.security.admin_keys):
        if admin_key.key == key:
            api_key_id = f"key_{idx}"

            if admin_key.allowed_ips and client_ip not in admin_key.allowed_ips:
                logger.warning(f"Admin key {api_key_id} rejected for IP {client_ip}")
                raise InvalidAPIKeyError("API key not allowed from this address")

            return api_key_id

    raise InvalidAPIKeyError("Invalid API key")


async def require_admin(
    request: Request, x_api_key: str | None = Header(None)
) -> str:
    """Dependency guarding every admin route."""
    client_ip, _ = get_client_info(request)
    try:
        api_key_id = validate_admin_key(request.app.state.config, x_api_key, client_ip)
    except InvalidAPIKeyError as e:
        logger.warning(f"Rejected admin request from {client_ip}: {e}")
        raise HTTPException(status_code=401, detail=str(e)) from None

    request.state.admin_key_id = api_key_id
    return api_key_id


router = APIRouter(
    prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)]
)


class UploadAudit:
    """Writes one admin upload attempt to the upload log."""

    def __init__(self, request: Request, db_ops: DatabaseOperations, active: bool = True):
        self.db_ops = db_ops
        self.active = active
        self.client_ip, self.user_agent = get_client_info(request)
        self.endpoint = request.url.path
        self.api_key_id = getattr(request.state, "admin_key_id", None)
        self.start_time = time.time()
        self.file: UploadedFile | None = None

    def record(self, response_code: int, error_message: str | None = None) -> None:
        if not self.active:
            return

        processing_time = (time.time() - self.start_time) * 1000
        try:
            self.db_ops.log_upload_attempt(
                client_ip=self.client_ip,
                success=response_code < 400,
                endpoint=self.endpoint,
                api_key_used=self.api_key_id,
                user_agent=self.user_agent,
                filename=sanitize_filename(self.file.originalname) if self.file else None,
                file_size=self.file.size if self.file else None,
                content_type=self.file.mimetype if self.file else None,
                error_message=error_message,
                response_code=response_code,
                processing_time_ms=processing_time,
            )
        except Exception as e:
            logger.error(f"Failed to log upload attempt: {e}")


def _require_fields(fields: dict[str, Any], names: tuple[str, ...]) -> None:
    if any(not fields.get(name) for name in names):
        raise HTTPException(status_code=400, detail="Missing required fields")


def _validate(model: type[ModelT], data: dict[str, Any]) -> ModelT:
    """Coerce raw form or JSON values into a request model, 400 on failure."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise HTTPException(
            status_code=400, detail="Invalid field values: " + "; ".join(problems)
        ) from None


async def _read_multipart(
    request: Request,
) -> tuple[dict[str, str], dict[str, UploadedFile]]:
    content_type = request.headers.get("content-type", "")
    if not is_multipart(content_type):
        raise HTTPException(status_code=400, detail="Multipart form data required")

    parsed = parse_multipart_form(await request.body(), content_type)
    if parsed is None:
        raise HTTPException(status_code=400, detail="Failed to parse form data")

    return parsed


async def _read_json(request: Request) -> dict[str, Any]:
    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from None

    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="JSON object expected")
    return data


async def _read_form_or_json(
    request: Request,
) -> tuple[dict[str, Any], dict[str, UploadedFile]]:
    """Read an update body sent either as multipart form data or JSON."""
    content_type = request.headers.get("content-type", "")
    if is_multipart(content_type):
        return await _read_multipart(request)
    if content_type.split(";")[0].strip().lower() == "application/json":
        return await _read_json(request), {}
    return {}, {}


async def _store_image(
    request: Request,
    image: UploadedFile,
    crop_mode: str | None,
    loss_gif: bool = False,
) -> ImageUrls:
    """Validate, resize and upload an image, returning the public URLs."""
    config: Config = request.app.state.config
    storage: ObjectStorage = request.app.state.storage

    validate_image_file(
        image,
        allowed_types=config.images.allowed_types,
        max_size_bytes=config.images.max_file_size_mb * 1024 * 1024,
    )

    def process_and_upload() -> ImageUrls:
        processed = process_image(
            image.buffer, crop_mode, image.mimetype, config.images
        )
        upload = upload_loss_gif_image_pair if loss_gif else upload_image_pair
        return upload(
            storage, processed.thumbnail, processed.large, processed.large_content_type
        )

    # Pillow and boto3 block, keep them off the event loop
    return await run_in_threadpool(process_and_upload)


def _discard(request: Request, urls: ImageUrls | None) -> None:
    if urls is not None:
        delete_images(request.app.state.storage, urls.image_url, urls.thumbnail_url)


# Cards


@router.get(
    "/cards",
    response_model=list[CardResponse],
    summary="List Cards",
    description="Page through cards in id order, optionally filtered by a search term",
)
@limiter.limit(admin_rate_limit)
async def list_cards(
    request: Request,
    limit: int = Query(20, description="Page size", ge=1, le=100),
    cursor: int | None = Query(None, description="Return cards after this id"),
    search: str | None = Query(
        None, description="Match title or category, or an exact year"
    ),
) -> list[CardResponse]:
    db_ops: DatabaseOperations = request.app.state.db_ops
    cards = db_ops.list_cards(limit=limit, cursor=cursor, search=search)
    return [CardResponse(**card.to_dict()) for card in cards]


@router.post(
    "/cards",
    response_model=CardResponse,
    status_code=201,
    summary="Create Card",
    description="Create a card from images that are already uploaded",
)
@limiter.limit(admin_rate_limit)
async def create_card(request: Request) -> CardResponse:
    db_ops: DatabaseOperations = request.app.state.db_ops

    data = await _read_json(request)
    _require_fields(data, (*CARD_FIELDS, "imageUrl"))
    body = _validate(CardCreate, data)

    card = db_ops.create_card(
        title=body.title,
        year=body.year,
        month=body.month,
        category=body.category,
        image_url=body.imageUrl,
        source_url=body.sourceUrl,
        thumbnail_url=body.thumbnailUrl or None,
    )
    return CardResponse(**card.to_dict())


@router.post(
    "/cards-with-image",
    response_model=CardResponse,
    status_code=201,
    summary="Create Card with Image",
    description="""Create a card and upload its image in one request.

The body is multipart form data with the text fields `title`, `year`,
`month`, `category`, `sourceUrl`, an optional `cropMode` (`crop` or
`scale`) and the file field `image` (JPEG, PNG, WebP or GIF, up to 10MB).
    """,
    responses={
        400: {"description": "Missing fields or invalid image"},
        500: {"description": "Failed to create card"},
    },
)
@limiter.limit(admin_rate_limit)
async def create_card_with_image(request: Request) -> CardResponse:
    db_ops: DatabaseOperations = request.app.state.db_ops
    audit = UploadAudit(request, db_ops)
    uploaded: ImageUrls | None = None

    try:
        fields, files = await _read_multipart(request)
        _require_fields(fields, CARD_FIELDS)

        image = files.get("image")
        if image is None:
            raise HTTPException(status_code=400, detail="Image file required")
        audit.file = image

        body = _validate(CardFields, fields)
        uploaded = await _store_image(request, image, fields.get("cropMode"))

        card = db_ops.create_card(
            title=body.title,
            year=body.year,
            month=body.month,
            category=body.category,
            image_url=uploaded.image_url,
            source_url=body.sourceUrl,
            thumbnail_url=uploaded.thumbnail_url,
        )

    except HTTPException as e:
        audit.record(e.status_code, str(e.detail))
        raise
    except (InvalidImageTypeError, FileSizeError) as e:
        audit.record(400, str(e))
        raise HTTPException(status_code=400, detail=str(e)) from None
    except Exception as e:
        logger.error(f"Card creation failed: {e}", exc_info=True)
        _discard(request, uploaded)
        audit.record(500, str(e))
        raise HTTPException(status_code=500, detail="Failed to create card") from None

    audit.record(201)
    logger.info(f"Created card {card.id} with image from {audit.client_ip}")
    return CardResponse(**card.to_dict())


@router.put(
    "/cards/{card_id}",
    response_model=CardResponse,
    summary="Update Card",
    description=(
        "Update a card from multipart form data or JSON. A multipart `image` "
        "field replaces the card's images; the old ones are deleted."
    ),
)
@limiter.limit(admin_rate_limit)
async def update_card(request: Request, card_id: int) -> CardResponse:
    db_ops: DatabaseOperations = request.app.state.db_ops

    original = db_ops.get_card(card_id)
    if original is None:
        raise HTTPException(status_code=404, detail="Card not found")

    audit = UploadAudit(
        request, db_ops, active=is_multipart(request.headers.get("content-type", ""))
    )
    uploaded: ImageUrls | None = None

    try:
        fields, files = await _read_form_or_json(request)
        _require_fields(fields, CARD_FIELDS)
        body = _validate(CardFields, fields)

        values: dict[str, Any] = {
            "title": body.title,
            "year": body.year,
            "month": body.month,
            "category": body.category,
            "source_url": body.sourceUrl,
        }

        image = files.get("image")
        if image is not None:
            audit.file = image
            uploaded = await _store_image(request, image, fields.get("cropMode"))
            values["image_url"] = uploaded.image_url
            values["thumbnail_url"] = uploaded.thumbnail_url

        card = db_ops.update_card(card_id, **values)
        if card is None:
            _discard(request, uploaded)
            uploaded = None
            raise HTTPException(status_code=404, detail="Card not found")

    except HTTPException as e:
        audit.record(e.status_code, str(e.detail))
        raise
    except (InvalidImageTypeError, FileSizeError) as e:
        audit.record(400, str(e))
        raise HTTPException(status_code=400, detail=str(e)) from None
    except Exception as e:
        logger.error(f"Card update failed: {e}", exc_info=True)
        _discard(request, uploaded)
        audit.record(500, str(e))
        raise HTTPException(status_code=500, detail="Failed to update card") from None

    if uploaded is not None:
        delete_images(
            request.app.state.storage, original.image_url, original.thumbnail_url
        )

    audit.record(200)
    return CardResponse(**card.to_dict())


@router.delete(
    "/cards/{card_id}",
    response_model=MessageResponse,
    summary="Delete Card",
    description="Delete a card. Its stored images are left in place.",
)
@limiter.limit(admin_rate_limit)
async def delete_card(request: Request, card_id: int) -> MessageResponse:
    db_ops: DatabaseOperations = request.app.state.db_ops

    if not db_ops.delete_card(card_id):
        raise HTTPException(status_code=404, detail="Card not found")

    return MessageResponse(message="Card deleted successfully")


# Loss GIFs


@router.get(
    "/loss-gifs",
    response_model=list[LossGifResponse],
    summary="List Loss GIFs",
    description="Page through loss GIFs ordered by streak threshold",
)
@limiter.limit(admin_rate_limit)
async def list_loss_gifs(
    request: Request,
    limit: int = Query(20, description="Page size", ge=1, le=100),
    cursor: int | None = Query(None, description="Return loss GIFs after this id"),
) -> list[LossGifResponse]:
    db_ops: DatabaseOperations = request.app.state.db_ops
    loss_gifs = db_ops.list_loss_gifs(limit=limit, cursor=cursor)
    return [LossGifResponse(**loss_gif.to_dict()) for loss_gif in loss_gifs]


@router.post(
    "/loss-gifs",
    response_model=LossGifResponse,
    status_code=201,
    summary="Create Loss GIF",
    description="Create a loss GIF from images that are already uploaded",
)
@limiter.limit(admin_rate_limit)
async def create_loss_gif(request: Request) -> LossGifResponse:
    db_ops: DatabaseOperations = request.app.state.db_ops

    data = await _read_json(request)
    _require_fields(data, (*LOSS_GIF_FIELDS, "imageUrl"))
    body = _validate(LossGifCreate, data)

    loss_gif = db_ops.create_loss_gif(
        category=body.category,
        streak_threshold=body.streakThreshold,
        image_url=body.imageUrl,
        thumbnail_url=body.thumbnailUrl or None,
    )
    return LossGifResponse(**loss_gif.to_dict())


@router.post(
    "/loss-gifs-with-image",
    response_model=LossGifResponse,
    status_code=201,
    summary="Create Loss GIF with Image",
    description=(
        "Create a loss GIF from multipart form data with `category`, "
        "`streakThreshold`, an optional `cropMode` and the file field `image`"
    ),
)
@limiter.limit(admin_rate_limit)
async def create_loss_gif_with_image(request: Request) -> LossGifResponse:
    db_ops: DatabaseOperations = request.app.state.db_ops
    audit = UploadAudit(request, db_ops)
    uploaded: ImageUrls | None = None

    try:
        fields, files = await _read_multipart(request)
        _require_fields(fields, LOSS_GIF_FIELDS)

        image = files.get("image")
        if image is None:
            raise HTTPException(status_code=400, detail="Image file required")
        audit.file = image

        body = _validate(LossGifFields, fields)
        uploaded = await _store_image(
            request, image, fields.get("cropMode"), loss_gif=True
        )

        loss_gif = db_ops.create_loss_gif(
            category=body.category,
            streak_threshold=body.streakThreshold,
            image_url=uploaded.image_url,
            thumbnail_url=uploaded.thumbnail_url,
        )

    except HTTPException as e:
        audit.record(e.status_code, str(e.detail))
        raise
    except (InvalidImageTypeError, FileSizeError) as e:
        audit.record(400, str(e))
        raise HTTPException(status_code=400, detail=str(e)) from None
    except Exception as e:
        logger.error(f"Loss GIF creation failed: {e}", exc_info=True)
        _discard(request, uploaded)
        audit.record(500, str(e))
        raise HTTPException(
            status_code=500, detail="Failed to create loss GIF"
        ) from None

    audit.record(201)
    return LossGifResponse(**loss_gif.to_dict())


@router.put(
    "/loss-gifs/{loss_gif_id}",
    response_model=LossGifResponse,
    summary="Update Loss GIF",
    description=(
        "Update a loss GIF from JSON (optionally with new `imageUrl` and "
        "`thumbnailUrl`) or from multipart form data with a replacement `image`"
    ),
)
@limiter.limit(admin_rate_limit)
async def update_loss_gif(request: Request, loss_gif_id: int) -> LossGifResponse:
    db_ops: DatabaseOperations = request.app.state.db_ops

    original = db_ops.get_loss_gif(loss_gif_id)
    if original is None:
        raise HTTPException(status_code=404, detail="Loss GIF not found")

    audit = UploadAudit(
        request, db_ops, active=is_multipart(request.headers.get("content-type", ""))
    )
    uploaded: ImageUrls | None = None

    try:
        fields, files = await _read_form_or_json(request)
        _require_fields(fields, LOSS_GIF_FIELDS)
        body = _validate(LossGifFields, fields)

        values: dict[str, Any] = {
            "category": body.category,
            "streak_threshold": body.streakThreshold,
        }
        if fields.get("imageUrl"):
            values["image_url"] = fields["imageUrl"]
            values["thumbnail_url"] = fields.get("thumbnailUrl") or None

        image = files.get("image")
        if image is not None:
            audit.file = image
            uploaded = await _store_image(
                request, image, fields.get("cropMode"), loss_gif=True
            )
            values["image_url"] = uploaded.image_url
            values["thumbnail_url"] = uploaded.thumbnail_url

        loss_gif = db_ops.update_loss_gif(loss_gif_id, **values)
        if loss_gif is None:
            _discard(request, uploaded)
            uploaded = None
            raise HTTPException(status_code=404, detail="Loss GIF not found")

    except HTTPException as e:
        audit.record(e.status_code, str(e.detail))
        raise
    except (InvalidImageTypeError, FileSizeError) as e:
        audit.record(400, str(e))
        raise HTTPException(status_code=400, detail=str(e)) from None
    except Exception as e:
        logger.error(f"Loss GIF update failed: {e}", exc_info=True)
        _discard(request, uploaded)
        audit.record(500, str(e))
        raise HTTPException(
            status_code=500, detail="Failed to update loss GIF"
        ) from None

    if uploaded is not None:
        delete_images(
            request.app.state.storage, original.image_url, original.thumbnail_url
        )

    audit.record(200)
    return LossGifResponse(**loss_gif.to_dict())


@router.delete(
    "/loss-gifs/{loss_gif_id}",
    response_model=MessageResponse,
    summary="Delete Loss GIF",
)
@limiter.limit(admin_rate_limit)
async def delete_loss_gif(request: Request, loss_gif_id: int) -> MessageResponse:
    db_ops: DatabaseOperations = request.app.state.db_ops

    if not db_ops.delete_loss_gif(loss_gif_id):
        raise HTTPException(status_code=404, detail="Loss GIF not found")

    return MessageResponse(message="Loss GIF deleted successfully")
