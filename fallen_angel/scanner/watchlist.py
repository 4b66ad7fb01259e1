import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class WatchlistError(Exception):
    pass


def parse_watchlist(text: str) -> list[str]:
    """One token id per line; blanks and ``#`` comments skipped, order kept."""
    seen: set[str] = set()
    tokens = []
    for line in text.splitlines():
        token = line.strip()
        if not token or token.startswith("#") or token in seen:
            continue
        seen.add(token)
        tokens.append(token)
    return tokens


def load_watchlist(path: str | Path) -> list[str]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise WatchlistError(f"Cannot read watchlist {path}: {exc}") from exc

    tokens = parse_watchlist(text)
    logger.info("Loaded %d tokens from %s", len(tokens), path)
    return tokens
