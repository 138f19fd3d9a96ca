from fastapi import APIRouter, Depends, Header, HTTPException

from trading_journal.config import Settings
from trading_journal.dependencies import get_market_data_service, get_settings
from trading_journal.models.schemas import (
    CryptoPricesResponse,
    FearGreedResponse,
    GoldPriceResponse,
    MarketDataResponse,
    NewsFeedResponse,
)
from trading_journal.services.market_data import MarketDataService

router = APIRouter(prefix="/api/v1/market", tags=["market"])


@router.get("", response_model=MarketDataResponse)
async def get_market_overview(
    x_api_key: str = Header(...),
    settings: Settings = Depends(get_settings),
    market: MarketDataService = Depends(get_market_data_service),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return MarketDataResponse(**await market.get_all_market_data())


@router.get("/crypto", response_model=CryptoPricesResponse)
async def get_crypto(
    x_api_key: str = Header(...),
    settings: Settings = Depends(get_settings),
    market: MarketDataService = Depends(get_market_data_service),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return CryptoPricesResponse(**await market.get_crypto_prices())


@router.get("/gold", response_model=GoldPriceResponse)
async def get_gold(
    x_api_key: str = Header(...),
    settings: Settings = Depends(get_settings),
    market: MarketDataService = Depends(get_market_data_service),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return GoldPriceResponse(**await market.get_gold_price())


@router.get("/fear-greed", response_model=FearGreedResponse)
async def get_fear_greed(
    x_api_key: str = Header(...),
    settings: Settings = Depends(get_settings),
    market: MarketDataService = Depends(get_market_data_service),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return FearGreedResponse(**await market.get_fear_greed_index())


@router.get("/news", response_model=NewsFeedResponse)
async def get_news(
    x_api_key: str = Header(...),
    settings: Settings = Depends(get_settings),
    market: MarketDataService = Depends(get_market_data_service),
):
    if x_api_key != settings.api_secret_key:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return NewsFeedResponse(**await market.get_financial_news())
