import logging
from typing import Literal

from fastapi import APIRouter, Depends, File, Header, HTTPException, UploadFile

from trading_journal.config import Settings
from trading_journal.dependencies import get_screenshot_extractor, get_settings
from trading_journal.services.assistant import AssistantError, QuotaExceededError
from trading_journal.services.extraction import ExtractionError, ScreenshotExtractor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/extract", tags=["extract"])


@router.post("/{kind}")
async def extract_trade(
    kind: Literal["forex", "crypto"],
    image: UploadFile = File(...),
    x_api_key: str = Header(...),
    settings: Settings = Depends(get_settings),
    extractor: ScreenshotExtractor = Depends(get_screenshot_extractor),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    mime_type = image.content_type or "image/png"
    if not mime_type.startswith("image/"):
        raise HTTPException(status_code=415, detail="Upload must be an image")

    data = await image.read()
    try:
        result = await extractor.extract(data, mime_type, kind)
    except QuotaExceededError:
        raise HTTPException(
            status_code=429,
            detail="AI analysis quota exceeded for today. Please enter your trade data manually for now.",
        )
    except ExtractionError as e:
        logger.warning("Extraction parse failure (%s): %s", kind, e)
        raise HTTPException(
            status_code=422,
            detail="Could not extract trade data. Please ensure the image shows clear trading information.",
        )
    except AssistantError as e:
        logger.error("Extraction call failed (%s): %s", kind, e)
        raise HTTPException(status_code=502, detail="Failed to analyze screenshot")

    return result.model_dump(by_alias=True, exclude_none=True)
