def calculate_roi(profit_loss: float, margin: float) -> float:
    """ROI in percent of margin, rounded to 2 decimals. Fixed at entry time."""
    if not margin:
        return 0.0
    return round(profit_loss / margin * 100, 2)


def calculate_forex_margin(
    volume_lot: float | None,
    contract_size: float | None,
    open_price: float | None,
    leverage: float | None,
) -> float | None:
    """Required margin = lots * contract size * price / leverage.

    Returns None unless every input is present and positive.
    """
    values = (volume_lot, contract_size, open_price, leverage)
    if any(v is None or v <= 0 for v in values):
        return None
    return round(volume_lot * contract_size * open_price / leverage, 2)
