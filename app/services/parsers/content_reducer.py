import re
import logging

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Markup that never carries recipe content
BOILERPLATE_SELECTORS = [
    'script', 'style', 'noscript', 'nav', 'footer', 'header', 'aside', 'iframe', 'form',
    '.nav', '.footer', '.header', '.sidebar',
    '.ad', '.ads', '.advertisement', '.comment', '.comments',
]

# Probable main-content regions, first match wins
MAIN_CONTENT_SELECTORS = [
    'article', 'main', '.recipe', '.recipe-content', '[class*="recipe"]',
]


def reduce_html_to_text(html: str, max_chars: int) -> str:
    """Strip boilerplate and return the whitespace-collapsed main-content text.

    Falls back to the body, then to the whole document, when no content
    region matches. The result is truncated to ``max_chars``.
    """
    soup = BeautifulSoup(html or "", 'html.parser')

    for element in soup.select(', '.join(BOILERPLATE_SELECTORS)):
        element.extract()

    region = None
    for selector in MAIN_CONTENT_SELECTORS:
        region = soup.select_one(selector)
        if region is not None and region.get_text(strip=True):
            break
        region = None

    if region is None:
        region = soup.body or soup
        logger.debug("No main-content region matched, using whole document text")

    text = re.sub(r'\s+', ' ', region.get_text(' ')).strip()
    return text[:max_chars]
