"""Rule-based intent classification for incoming queries."""

from __future__ import annotations

import re

from knowledge_agent.types import IntentKind, ParsedIntent

_URL_PATTERN = re.compile(r"https?://\S+|www\.\S+", flags=re.IGNORECASE)
# No trailing word boundary: "whatever ..." still reads as a question.
_QUESTION_PATTERN = re.compile(
    r"^(what|who|where|when|why|how|is|are|can|could|would|should|do|does)",
    flags=re.IGNORECASE,
)
COMMAND_KEYWORDS: tuple[str, ...] = (
    "add",
    "remove",
    "delete",
    "clear",
    "show",
    "list",
    "create",
    "update",
)


class IntentClassifier:
    """Turns raw query text into a typed `ParsedIntent`.

    The cascade is ordered and the first match wins:

    1. URL      - any `http(s)://` or `www.` token, all matches kept verbatim.
    2. QUESTION - the query starts with an interrogative/auxiliary lead word.
    3. COMMAND  - a command keyword appears anywhere (substring, not word-bounded).
    4. UNKNOWN  - nothing matched.

    Classification is pure and total: every string yields an intent.
    """

    def classify(self, query: str) -> ParsedIntent:
        urls = _URL_PATTERN.findall(query)
        if urls:
            return ParsedIntent(kind=IntentKind.URL, raw_query=query, urls=tuple(urls))

        if _QUESTION_PATTERN.match(query):
            return ParsedIntent(kind=IntentKind.QUESTION, raw_query=query)

        lowered = query.lower()
        keywords = tuple(keyword for keyword in COMMAND_KEYWORDS if keyword in lowered)
        if keywords:
            return ParsedIntent(kind=IntentKind.COMMAND, raw_query=query, keywords=keywords)

        return ParsedIntent(kind=IntentKind.UNKNOWN, raw_query=query)
