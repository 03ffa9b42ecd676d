"""爬取步骤模块。

- PageFetcher: 页面抓取协议，返回 (内容, 发现的链接, 错误)
- HttpPageFetcher: 基于 aiohttp + BeautifulSoup 的默认实现
- Spider: 执行单个 URL 的爬取步骤并记录访问 / 发现
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urldefrag, urljoin, urlparse

import aiohttp
from bs4 import BeautifulSoup

from ..core.metrics import CRAWL_DURATION, DISCOVERED_LINKS, PAGES_FETCHED

if TYPE_CHECKING:
    from ..core.datastore import DataStore
    from ..core.tracker import DedupTracker

log = logging.getLogger("spider")


@dataclasses.dataclass(slots=True, frozen=True)
class FetchResult:
    """页面抓取结果。

    Attributes:
        content: 页面内容，失败时为空字符串
        links: 页面中发现的绝对 URL
        error: 失败原因，成功时为 None
    """

    content: str = ""
    links: tuple[str, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PageFetcher(Protocol):
    """页面抓取协议。抓取失败通过 FetchResult.error 返回，不抛出异常。"""

    async def fetch(self, url: str) -> FetchResult: ...


def extract_links(html: str, base_url: str, limit: int | None = None) -> list[str]:
    """从 HTML 中提取 <a href> 链接。

    相对链接按 base_url 解析为绝对 URL，去掉片段，只保留 http(s)，按出现顺序去重。
    """
    soup = BeautifulSoup(html, "html.parser")
    links: dict[str, None] = {}

    for a in soup.find_all("a", href=True):
        try:
            url, _ = urldefrag(urljoin(base_url, a["href"].strip()))
            parsed = urlparse(url)
        except ValueError:
            # 例如未闭合的 IPv6 主机 "http://[::1/x"
            log.debug(f"Skipping malformed href {a['href']!r} on {base_url}")
            continue
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            continue
        links[url] = None
        if limit is not None and len(links) >= limit:
            break

    return list(links)


class HttpPageFetcher:
    """基于 aiohttp 的页面抓取器。

    Attributes:
        session: 容器中创建的 aiohttp 会话
        max_links: 每个页面最多保留的链接数
    """

    def __init__(self, session: aiohttp.ClientSession, max_links: int = 500):
        self.session = session
        self.max_links = max_links

    async def fetch(self, url: str) -> FetchResult:
        try:
            async with self.session.get(url) as resp:
                if resp.status >= 400:
                    return FetchResult(error=f"HTTP {resp.status}")
                content = await resp.text(errors="replace")
                content_type = resp.headers.get("Content-Type", "")
                final_url = str(resp.url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return FetchResult(error=f"{type(e).__name__}: {e}")

        if "html" not in content_type.lower():
            return FetchResult(content=content)

        try:
            links = extract_links(content, final_url, self.max_links)
        except ValueError as e:
            return FetchResult(content=content, error=f"link extraction failed: {e}")

        return FetchResult(content=content, links=tuple(links))


class Spider:
    """执行爬取步骤。

    流程：抓取页面 → 记录访问时间 → 将发现的链接加入已发现集合 → 写入 URL 记录。
    发现的链接不会自动创建新任务。

    Attributes:
        fetcher: 页面抓取器
        tracker: 去重追踪器
        datastore: 数据存储层实例
    """

    def __init__(self, fetcher: PageFetcher, tracker: DedupTracker, datastore: DataStore):
        self.fetcher = fetcher
        self.tracker = tracker
        self.datastore = datastore

    async def crawl(self, url: str) -> FetchResult:
        """爬取单个 URL。

        抓取失败只记录日志，URL 仍会被记录为已访问（无发现链接）。
        去重集合或数据库写入失败会向上抛出。

        Returns:
            FetchResult: 抓取结果。
        """
        log.info(f"Crawling {url}")
        start = time.perf_counter()

        result = await self.fetcher.fetch(url)
        if result.ok:
            PAGES_FETCHED.labels(status="success").inc()
        else:
            PAGES_FETCHED.labels(status="error").inc()
            log.warning(f"Fetch failed for {url}: {result.error}")

        await self.tracker.mark_visited(url)

        for link in result.links:
            await self.tracker.mark_discovered(link)
        if result.links:
            DISCOVERED_LINKS.inc(len(result.links))
            await self.datastore.save_urls(result.links)

        CRAWL_DURATION.observe(time.perf_counter() - start)
        log.debug(f"Crawled {url}: {len(result.links)} links discovered.")
        return result
