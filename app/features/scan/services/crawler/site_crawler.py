import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, List, Optional

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from app.features.scan.schemas.scan import PageSnapshot
from app.features.scan.services.crawler.page_loader import LoadedPage, PageLoader
from app.platform.utils.url_validator import is_same_origin, normalize_url, origin_of

logger = logging.getLogger(__name__)

# Frontier + captured pages may exceed max_pages by this much
FRONTIER_SLACK = 5


class CrawlOptions(BaseModel):
    max_pages: int = 5
    same_origin_only: bool = True
    page_timeout: float = 15.0
    retry_count: int = 2
    retry_base_delay: float = 0.5


class SiteCrawler:
    """
    Breadth-first, same-origin page discovery and capture.

    Pages are visited one at a time to bound browser memory; the blocking
    browser calls run in the threadpool so other scans keep moving.
    """

    def __init__(
        self,
        loader_factory: Callable[[], PageLoader],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.loader_factory = loader_factory
        self._sleep = sleep

    async def crawl(
        self,
        start_url: str,
        options: Optional[CrawlOptions] = None,
        scan_id: Optional[str] = None,
    ) -> List[PageSnapshot]:
        options = options or CrawlOptions()
        tag = f"[{scan_id}] " if scan_id else ""

        start = normalize_url(start_url)
        if start is None:
            raise ValueError(f"Cannot crawl invalid URL: {start_url}")
        origin = origin_of(start)

        frontier = deque([start])
        queued = {start}
        visited = set()
        snapshots: List[PageSnapshot] = []

        loader = self.loader_factory()
        await run_in_threadpool(loader.open)
        try:
            while frontier and len(snapshots) < options.max_pages:
                url = frontier.popleft()
                if url in visited:
                    continue
                visited.add(url)

                logger.debug(f"{tag}Crawling {url}")
                page = await self._load_with_retry(loader, url, options, tag)
                if page is None:
                    logger.warning(f"{tag}Skipping {url} after failed retries")
                    continue

                snapshots.append(
                    PageSnapshot(url=url, html=page.html, screenshot=page.screenshot)
                )
                if len(snapshots) >= options.max_pages:
                    break

                for href in page.links:
                    link = normalize_url(href, base=url)
                    if link is None or link in visited or link in queued:
                        continue
                    if options.same_origin_only and not is_same_origin(link, origin):
                        continue
                    if len(frontier) + len(snapshots) >= options.max_pages + FRONTIER_SLACK:
                        break
                    frontier.append(link)
                    queued.add(link)
        finally:
            await run_in_threadpool(loader.close)

        logger.info(f"{tag}Crawled {len(snapshots)} pages from {start_url}")
        return snapshots

    async def _load_with_retry(
        self,
        loader: PageLoader,
        url: str,
        options: CrawlOptions,
        tag: str,
    ) -> Optional[LoadedPage]:
        attempts = max(1, options.retry_count)
        for attempt in range(1, attempts + 1):
            try:
                return await run_in_threadpool(loader.load_page, url, options.page_timeout)
            except Exception as e:
                last_attempt = attempt == attempts
                logger.warning(
                    f"{tag}Page load failed for {url} (attempt {attempt}/{attempts})"
                    f"{'' if last_attempt else ', retrying'}: {e}"
                )
                if last_attempt:
                    return None
                await self._sleep(options.retry_base_delay * attempt)
        return None
