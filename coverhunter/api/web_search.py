"""Browser-based image search engines."""

from enum import Enum
from urllib.parse import quote_plus


class WebEngine(Enum):
    """Engines that are searched in a web browser instead of through an API."""
    BING = "BingWeb"
    GOOGLE = "GoogleWeb"


_SEARCH_URLS = {
    WebEngine.BING: "https://www.bing.com/images/search?q={query}",
    WebEngine.GOOGLE: "https://www.google.com/search?tbm=isch&q={query}",
}


def parse_web_engine(value: str) -> WebEngine:
    """
    Raises:
        ValueError: If ``value`` names no web engine
    """
    for engine in WebEngine:
        if value.lower() in (engine.value.lower(), engine.name.lower()):
            return engine
    raise ValueError(f"Unknown web search engine '{value}'")


def build_web_search_url(engine: WebEngine, query: str) -> str:
    """
    Build the image search page URL for a query.

    Example:
        >>> build_web_search_url(WebEngine.BING, '"Super Mario" box art')
        'https://www.bing.com/images/search?q=%22Super+Mario%22+box+art'
    """
    query = query.strip()
    if not query:
        raise ValueError("Search query cannot be empty")
    return _SEARCH_URLS[engine].format(query=quote_plus(query))
