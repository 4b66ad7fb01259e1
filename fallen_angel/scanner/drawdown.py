from fallen_angel.scanner.models import AthRecord


def compute_drawdown(current_price: float, ath: AthRecord | None) -> float | None:
    """Percent below the ATH, or None when there is no usable ATH."""
    if ath is None or ath.ath_price is None or ath.ath_price <= 0:
        return None
    return (ath.ath_price - current_price) / ath.ath_price * 100


def is_fallen_angel(drawdown_pct: float | None, threshold_pct: float) -> bool:
    return drawdown_pct is not None and drawdown_pct >= threshold_pct
