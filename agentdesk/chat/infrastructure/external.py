"""
Chat External Service Integrations
===================================

Knowledge corpus and retrieval:
- YAML source list with watchdog hot-reload
- Refresh timestamp log deciding corpus freshness
- Parallel page fetching (httpx) and HTML-to-text extraction (BeautifulSoup)
- Chunking, embedding and vector search
- APScheduler job for background corpus refresh
"""

import asyncio
import re
import threading
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Sequence

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from bs4 import BeautifulSoup
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from agentdesk.chat.application.services import IRetrievalService
from agentdesk.chat.domain import ContextSnippet, RetrievalResult
from agentdesk.config import Settings, settings as default_settings
from agentdesk.core import ApplicationException, RetrievalDegradedException
from agentdesk.infrastructure.llm import IGenerationClient
from agentdesk.infrastructure.vectorstore import Document, IVectorStore
from agentdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

STRIPPED_TAGS = ["script", "style", "noscript", "iframe", "svg", "link"]
DEFAULT_HEADERS = {"User-Agent": "agentdesk/1.0"}
EMBEDDING_BATCH_SIZE = 64


# ========== Source List ==========

class SourcesFileHandler(FileSystemEventHandler):
    """Watchdog event handler for source list changes."""

    def __init__(self, provider: "SourceProvider", path: Path):
        self.provider = provider
        self.path = path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.path.resolve():
            logger.info(f"Sources file changed: {event.src_path}")
            self.provider.reload()


class SourceProvider:
    """
    Thread-safe list of corpus source URLs with hot-reload support.

    Reads ``sources: [url, ...]`` from a YAML file; falls back to the
    configured URLs when the file is absent or empty.
    """

    def __init__(self, path: Optional[Path] = None, fallback_urls: Sequence[str] = ()):
        self._path = path
        self._fallback = list(fallback_urls)
        self._urls: List[str] = list(fallback_urls)
        self._lock = threading.Lock()
        self._observer = None

    def load(self) -> List[str]:
        """Initial load."""
        urls = self._load_from_file()
        with self._lock:
            self._urls = urls
        return urls

    def _load_from_file(self) -> List[str]:
        if self._path is None or not self._path.exists():
            return list(self._fallback)

        with open(self._path, "r") as f:
            data = yaml.safe_load(f) or {}

        urls = [str(url).strip() for url in data.get("sources") or [] if str(url).strip()]
        return urls or list(self._fallback)

    def reload(self) -> bool:
        try:
            urls = self._load_from_file()
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to reload sources: {e}")
            return False

        with self._lock:
            self._urls = urls
        logger.info("Corpus sources reloaded", extra={"source_count": len(urls)})
        return True

    def start_watching(self) -> None:
        """Watch the sources file; skipped when the file does not exist."""
        if self._path is None or not self._path.exists():
            logger.info(f"Sources file not found, skipping file watch: {self._path}")
            return

        try:
            self._observer = Observer()
            self._observer.schedule(
                SourcesFileHandler(self, self._path),
                str(self._path.parent),
                recursive=False
            )
            self._observer.start()
            logger.info(f"Started watching sources file: {self._path}")
        except OSError as e:
            logger.warning(f"File watching not available, using static sources: {e}")
            self._observer = None

    def stop_watching(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def urls(self) -> List[str]:
        with self._lock:
            return list(self._urls)


# ========== Freshness ==========

_TIMESTAMP_PATTERN = re.compile(r"^\[(.*?)\]")


class CorpusFreshnessTracker:
    """
    Append-only log of corpus refreshes.

    Each line reads ``[<ISO timestamp>] <message>``; the last line decides
    whether the corpus is still fresh.
    """

    def __init__(self, log_path: Path, max_age_hours: float):
        self._path = log_path
        self._max_age = timedelta(hours=max_age_hours)

    def record(self, message: str, now: Optional[datetime] = None) -> None:
        timestamp = (now or datetime.now(timezone.utc)).isoformat()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(f"[{timestamp}] {message}\n")

    def last_refresh(self) -> Optional[datetime]:
        if not self._path.exists():
            return None

        lines = self._path.read_text(encoding="utf-8").strip().splitlines()
        if not lines:
            return None

        match = _TIMESTAMP_PATTERN.match(lines[-1])
        if not match:
            return None
        try:
            timestamp = datetime.fromisoformat(match.group(1))
        except ValueError:
            return None
        return timestamp if timestamp.tzinfo else timestamp.replace(tzinfo=timezone.utc)

    def is_fresh(self, now: Optional[datetime] = None) -> bool:
        last = self.last_refresh()
        if last is None:
            return False
        return (now or datetime.now(timezone.utc)) - last < self._max_age


# ========== Text Processing ==========

def html_to_text(html: str) -> str:
    """Visible body text of an HTML page."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(STRIPPED_TAGS):
        tag.decompose()
    root = soup.body or soup
    return root.get_text("\n", strip=True)


def chunk_text(text: str, chunk_size: int, chunk_overlap: int) -> List[str]:
    """
    Split text into overlapping chunks.

    Prefers to cut at a paragraph break, then a line break, then a sentence
    end, as long as the cut falls in the second half of the window.
    """
    chunks = []
    start = 0
    text_length = len(text)

    while start < text_length:
        end = start + chunk_size

        if end < text_length:
            for separator in ("\n\n", "\n", ". "):
                position = text.rfind(separator, start, end)
                if position > start + chunk_size // 2:
                    end = position + len(separator)
                    break

        chunk = text[start:end].strip()
        if chunk:
            chunks.append(chunk)

        if end >= text_length:
            break
        start = max(end - chunk_overlap, start + 1)

    return chunks


# ========== Retrieval ==========

class DocumentRetriever(IRetrievalService):
    """
    Retrieval service over the knowledge corpus.

    In inline mode a stale corpus is rebuilt inside the first request that
    notices it; the lock makes concurrent requests share that one refresh.
    """

    def __init__(
        self,
        llm_client: IGenerationClient,
        vector_store: IVectorStore,
        source_provider: SourceProvider,
        freshness_tracker: CorpusFreshnessTracker,
        config: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        config = config or default_settings
        self._llm = llm_client
        self._vector_store = vector_store
        self._sources = source_provider
        self._freshness = freshness_tracker
        self._top_k = config.top_k_results
        self._chunk_size = config.chunk_size
        self._chunk_overlap = config.chunk_overlap
        self._fetch_timeout = config.fetch_timeout_seconds
        self._refresh_inline = config.corpus_refresh_mode == "inline"
        self._http_client = http_client
        self._refresh_lock = asyncio.Lock()
        self._refreshed = False

    async def retrieve(self, query: str) -> RetrievalResult:
        """
        Return the top matching snippets for ``query``.

        Raises:
            RetrievalDegradedException: If refresh, embedding or search fails
        """
        try:
            if self._refresh_inline:
                await self.ensure_fresh()

            embedding = await self._llm.generate_embedding(query)
            results = await self._vector_store.search(embedding.embedding, top_k=self._top_k)
        except (ApplicationException, httpx.HTTPError, OSError) as e:
            raise RetrievalDegradedException(f"Retrieval failed: {e}") from e

        return RetrievalResult(context=[
            ContextSnippet(
                content=result.content,
                source=result.metadata.get("source", ""),
                score=result.score
            )
            for result in results
        ])

    async def ensure_fresh(self) -> None:
        if await self._is_current():
            return
        async with self._refresh_lock:
            # Another request may have refreshed while we waited
            if await self._is_current():
                return
            await self.refresh_corpus()

    async def _is_current(self) -> bool:
        if not self._freshness.is_fresh():
            return False
        # An in-process store starts empty even when the log says fresh
        return self._refreshed or await self._vector_store.get_document_count() > 0

    async def refresh_corpus(self) -> int:
        """
        Fetch every source in parallel, re-chunk and re-index it.

        Returns:
            Number of chunks added
        """
        urls = self._sources.urls
        logger.info("Refreshing knowledge corpus", extra={"source_count": len(urls)})

        client = self._http_client or httpx.AsyncClient(
            headers=DEFAULT_HEADERS,
            timeout=self._fetch_timeout,
            follow_redirects=True
        )
        try:
            pages = await asyncio.gather(*(self._fetch_page(client, url) for url in urls))
        finally:
            if self._http_client is None:
                await client.aclose()

        # The store is only touched once every source has been embedded
        replaced: List[str] = []
        documents: List[Document] = []
        for url, html in zip(urls, pages):
            if html is None:
                continue
            chunks = chunk_text(html_to_text(html), self._chunk_size, self._chunk_overlap)
            if not chunks:
                continue
            embeddings = await self._embed(chunks)
            documents.extend(
                Document(id=str(uuid.uuid4()), text=chunk, embedding=vector, metadata={"source": url})
                for chunk, vector in zip(chunks, embeddings)
            )
            replaced.append(url)

        for url in replaced:
            await self._vector_store.delete_by_source(url)
        await self._vector_store.add_documents(documents)
        self._freshness.record(f"Added {len(documents)} chunks from {len(urls)} URLs.")
        self._refreshed = True

        logger.info(
            "Knowledge corpus refreshed",
            extra={"chunks_added": len(documents), "source_count": len(urls)}
        )
        return len(documents)

    async def _fetch_page(self, client: httpx.AsyncClient, url: str) -> Optional[str]:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Skipping source", extra={"url": url, "error": str(e)})
            return None
        return response.text

    async def _embed(self, chunks: List[str]) -> List[List[float]]:
        vectors: List[List[float]] = []
        for i in range(0, len(chunks), EMBEDDING_BATCH_SIZE):
            batch = await self._llm.generate_embeddings(chunks[i:i + EMBEDDING_BATCH_SIZE])
            vectors.extend(result.embedding for result in batch)
        return vectors


class CorpusRefreshScheduler:
    """
    Wrapper for APScheduler that refreshes the corpus in the background.

    Used when refresh mode is ``background``; requests then never refresh
    inline.
    """

    def __init__(self, retriever: DocumentRetriever, interval_hours: float):
        self._retriever = retriever
        self.interval_hours = interval_hours
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def _run(self) -> None:
        try:
            await self._retriever.refresh_corpus()
        except ApplicationException as e:
            logger.error("Scheduled corpus refresh failed", extra={"error": e.message})

    async def start(self) -> None:
        if self._running:
            logger.warning("Corpus refresh scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._run,
            "interval",
            hours=self.interval_hours,
            id="corpus_refresh",
            name="Corpus Refresh Job",
            next_run_time=datetime.now(timezone.utc),
            misfire_grace_time=300,
            max_instances=1,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info("Corpus refresh scheduler started", extra={"interval_hours": self.interval_hours})

    async def stop(self) -> None:
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Corpus refresh scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
