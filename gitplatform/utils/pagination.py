"""
Pagination helpers for GitHub and GitLab REST responses.
"""

import re
from dataclasses import dataclass
from typing import Mapping, Optional, Union
from urllib.parse import parse_qs, urlparse

_LINK_RE = re.compile(r'<([^>]+)>\s*;\s*rel="?([^";]+)"?')


@dataclass(frozen=True)
class PaginationInfo:
    has_next: bool = False
    has_previous: bool = False
    next_page: Optional[int] = None
    previous_page: Optional[int] = None
    last_page: Optional[int] = None


def _page_from_url(url: str) -> Optional[int]:
    values = parse_qs(urlparse(url).query).get("page")
    if not values:
        return None
    try:
        return int(values[0])
    except ValueError:
        return None


def extract_pagination_info(
    source: Union[str, Mapping[str, str], None],
) -> PaginationInfo:
    """
    Parse a ``Link`` header into page numbers.

    Accepts the raw header value or a header mapping (lower-case keys). Only
    ``next``, ``prev``/``previous`` and ``last`` relations are used; anything
    absent stays ``None``.

    :param source: Link header string or response headers.
    :return: PaginationInfo.

    Example:
        >>> extract_pagination_info('<https://x?page=2>; rel="next"').next_page
        2
    """
    if source is None:
        return PaginationInfo()
    if isinstance(source, str):
        link_header = source
    else:
        link_header = source.get("link") or source.get("Link") or ""

    next_page = previous_page = last_page = None

    for part in link_header.split(","):
        match = _LINK_RE.search(part.strip())
        if not match:
            continue
        url, rels = match.groups()
        page = _page_from_url(url)
        if page is None:
            continue
        # A single link may carry several space separated relations.
        for rel in rels.split():
            if rel == "next":
                next_page = page
            elif rel in ("prev", "previous"):
                previous_page = page
            elif rel == "last":
                last_page = page

    return PaginationInfo(
        has_next=next_page is not None,
        has_previous=previous_page is not None,
        next_page=next_page,
        previous_page=previous_page,
        last_page=last_page,
    )
