from trading_journal.utils.calculations import calculate_forex_margin, calculate_roi


def test_roi_rounds_to_two_decimals():
    assert calculate_roi(33.333, 100.0) == 33.33
    assert calculate_roi(-25.0, 200.0) == -12.5


def test_roi_zero_margin():
    assert calculate_roi(100.0, 0.0) == 0.0


def test_forex_margin():
    # 0.1 lot of XAUUSD (100 oz contract) at 2000 with 1:100 leverage
    assert calculate_forex_margin(0.1, 100, 2000.0, 100) == 200.0


def test_forex_margin_requires_every_input():
    assert calculate_forex_margin(None, 100, 2000.0, 100) is None
    assert calculate_forex_margin(0.1, 100, 2000.0, 0) is None
