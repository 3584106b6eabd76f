"""Metadata enrichment for the submission form.

The fetcher and the HTML extractor are the only parts that touch the
network or raw markup. ``normalize_metadata`` is a pure transform over
whatever they found, and ``enrich_url`` never raises: any failure degrades
to a hostname/favicon record marked ``source="fallback"``.
"""

import asyncio
import logging
from dataclasses import dataclass
from dataclasses import field
from typing import List
from typing import Optional
from urllib.parse import parse_qs
from urllib.parse import urljoin
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from .config import get_settings
from .models import Enrichment

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; FluxstackBot/1.0; +https://fluxstack.dev)"
YOUTUBE_HOSTS = {"youtube.com", "m.youtube.com", "music.youtube.com"}
YOUTUBE_THUMBNAIL = "https://img.youtube.com/vi/{video_id}/hqdefault.jpg"
VIMEO_THUMBNAIL = "https://vumbnail.com/{video_id}.jpg"
MAX_PAGE_BYTES = 2 * 1024 * 1024


@dataclass
class PageMetadata:
    """Optional fields pulled out of a fetched page."""

    title: Optional[str] = None
    alt_title: Optional[str] = None
    description: Optional[str] = None
    alt_description: Optional[str] = None
    image: Optional[str] = None
    alt_image: Optional[str] = None
    videos: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(
            [self.title, self.alt_title, self.description, self.alt_description, self.image, self.alt_image]
            + self.videos
        )


def _meta_content(soup: BeautifulSoup, *names: str) -> Optional[str]:
    """First non-empty content of a <meta> tag matching any name/property."""
    for name in names:
        tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
        if tag is None:
            continue
        content = (tag.get("content") or "").strip()
        if content:
            return content
    return None


def extract_metadata(html: str) -> PageMetadata:
    """Pull Open Graph, Twitter card and plain HTML metadata out of a page."""
    soup = BeautifulSoup(html or "", "html.parser")

    title_tag = soup.title.get_text(strip=True) if soup.title else ""
    videos = []
    for name in ("og:video", "og:video:url", "og:video:secure_url", "twitter:player"):
        value = _meta_content(soup, name)
        if value and value not in videos:
            videos.append(value)

    return PageMetadata(
        title=_meta_content(soup, "og:title"),
        alt_title=_meta_content(soup, "twitter:title") or title_tag or None,
        description=_meta_content(soup, "og:description"),
        alt_description=_meta_content(soup, "description", "twitter:description"),
        image=_meta_content(soup, "og:image", "og:image:url", "og:image:secure_url"),
        alt_image=_meta_content(soup, "twitter:image", "twitter:image:src"),
        videos=videos,
    )


def _hostname(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def favicon_url(url: str) -> Optional[str]:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}/favicon.ico"


def video_thumbnail(video_url: Optional[str]) -> Optional[str]:
    """Thumbnail for YouTube and Vimeo links; None for anything else."""
    if not video_url:
        return None
    parsed = urlparse(video_url)
    host = _hostname(video_url)
    segments = [segment for segment in parsed.path.split("/") if segment]

    if host in YOUTUBE_HOSTS:
        video_id = parse_qs(parsed.query).get("v", [None])[0]
        if not video_id and len(segments) >= 2 and segments[0] in ("embed", "shorts", "v"):
            video_id = segments[-1]
        return YOUTUBE_THUMBNAIL.format(video_id=video_id) if video_id else None

    if host == "youtu.be" and segments:
        return YOUTUBE_THUMBNAIL.format(video_id=segments[-1])

    if host in ("vimeo.com", "player.vimeo.com") and segments and segments[-1].isdigit():
        return VIMEO_THUMBNAIL.format(video_id=segments[-1])

    return None


def _resolve(value: Optional[str], base_url: str) -> Optional[str]:
    if not value:
        return None
    return urljoin(base_url, value.strip())


def normalize_metadata(metadata: PageMetadata, url: str) -> Enrichment:
    """Pick the best title, description, thumbnail and demo video for a page."""
    title = metadata.title or metadata.alt_title or _hostname(url) or url
    description = metadata.description or metadata.alt_description or None
    demo_video_url = _resolve(metadata.videos[0], url) if metadata.videos else None

    thumbnail_url = (
        _resolve(metadata.image, url)
        or _resolve(metadata.alt_image, url)
        or video_thumbnail(demo_video_url)
        or video_thumbnail(url)
        or favicon_url(url)
    )

    return Enrichment(
        title=title.strip(),
        description=description.strip() if description else None,
        thumbnail_url=thumbnail_url,
        demo_video_url=demo_video_url,
        source="fallback" if metadata.is_empty() else "open-graph",
    )


def fallback_enrichment(url: str) -> Enrichment:
    return normalize_metadata(PageMetadata(), url)


async def _read_limited(response: httpx.Response) -> str:
    """Read at most MAX_PAGE_BYTES of a streamed response body."""
    chunks = []
    size = 0
    async for chunk in response.aiter_bytes():
        chunk = chunk[: MAX_PAGE_BYTES - size]
        chunks.append(chunk)
        size += len(chunk)
        if size >= MAX_PAGE_BYTES:
            logger.info(f"Truncated {response.url} after {MAX_PAGE_BYTES} bytes")
            break
    return b"".join(chunks).decode(response.charset_encoding or "utf-8", errors="replace")


async def _stream_page(client: httpx.AsyncClient, url: str, timeout: float) -> str:
    headers = {"User-Agent": USER_AGENT, "Accept": "text/html,application/xhtml+xml"}
    async with client.stream("GET", url, headers=headers, timeout=timeout, follow_redirects=True) as response:
        response.raise_for_status()
        return await _read_limited(response)


async def fetch_page(url: str, *, timeout: float, client: Optional[httpx.AsyncClient] = None) -> str:
    """Fetch raw HTML for a page, keeping only the first MAX_PAGE_BYTES."""
    if client is not None:
        return await _stream_page(client, url, timeout)

    async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as http_client:
        return await _stream_page(http_client, url, timeout)


async def enrich_url(
    url: str,
    *,
    timeout: Optional[float] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Enrichment:
    """Fetch a page and normalize its metadata, degrading to the fallback record on any failure."""
    timeout = timeout if timeout is not None else get_settings().fetch_timeout
    try:
        html = await asyncio.wait_for(fetch_page(url, timeout=timeout, client=client), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Enrichment fetch timed out after {timeout}s for {url}")
        return fallback_enrichment(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Enrichment fetch failed for {url}: {e}")
        return fallback_enrichment(url)

    enrichment = normalize_metadata(extract_metadata(html), url)
    logger.info(f"Enriched {url} ({enrichment.source})")
    return enrichment
