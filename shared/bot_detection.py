"""
Bot detection utilities — framework-agnostic.

Combines two detection methods:
1. ``crawlerdetect`` library (signature-based)
2. A short regex list of crawlers the storefront script also skips
   (link-preview fetchers and the major search engines)

Shops with ``exclude_bots`` enabled never redirect or block these visitors.
"""

from __future__ import annotations

import re
from typing import Optional

from crawlerdetect import CrawlerDetect

_crawler_detect = CrawlerDetect()

BOT_USER_AGENT_PATTERN = re.compile(
    r"bot|crawl|spider|slurp|mediapartners|facebookexternalhit|bingpreview"
    r"|linkedinbot|googlebot",
    re.IGNORECASE,
)


def is_bot_request(user_agent: Optional[str]) -> bool:
    """Return True if *user_agent* looks like an automated crawler or bot.

    An empty or missing User-Agent is treated as a human visitor so the shop's
    rules still apply.
    """
    if not user_agent:
        return False
    if BOT_USER_AGENT_PATTERN.search(user_agent):
        return True
    return bool(_crawler_detect.isCrawler(user_agent))


def get_bot_name(user_agent: Optional[str]) -> Optional[str]:
    """Return the name/pattern of the detected bot, or ``None`` for humans."""
    if not is_bot_request(user_agent):
        return None

    if _crawler_detect.isCrawler(user_agent):
        matches = _crawler_detect.getMatches()
        if matches:
            return str(matches)

    match = BOT_USER_AGENT_PATTERN.search(user_agent or "")
    return match.group(0).lower() if match else None
