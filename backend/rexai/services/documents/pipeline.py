"""Document ingestion pipeline.

Runs one ingestion call end to end:
1. Create the document record
2. Download and extract text (unreadable files become a placeholder)
3. Normalize, chunk and embed the text
4. Store all chunks in one write and mark the document completed
5. Start the summary in the background and return the chunk count

The summary task is detached from the call: its failures are logged and
never reach the caller.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from typing import Optional

from rexai.config import settings
from rexai.logging import document_id_var
from rexai.services.documents.chunking import ChunkOptions, TextChunker
from rexai.services.documents.extraction import (
    DocumentFetcher,
    ExtractionFailure,
    get_extractor,
    normalize_text,
)
from rexai.services.documents.store import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    DocumentStore,
    EmbeddedChunk,
)
from rexai.services.embeddings.embedding import EmbeddingService
from rexai.services.llm.summarization import SummarizationChain

logger = logging.getLogger("rexai.ingestion")


class IngestionFailure(Exception):
    """Raised when the synchronous part of an ingestion call fails."""

    def __init__(self, document_id: Optional[int], cause: BaseException):
        self.document_id = document_id
        self.cause = cause
        super().__init__(
            f"Ingestion failed for document {document_id}: {cause}"
            if document_id is not None
            else f"Ingestion failed: {cause}"
        )


@dataclass
class IngestionResult:
    document_id: int
    chunk_count: int
    empty: bool = False


class BackgroundTasks:
    """Tracks detached tasks so none is garbage-collected or lost on shutdown."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro, name: str | None = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._done)
        return task

    def _done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task %s failed", task.get_name(), exc_info=exc
            )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for pending tasks; cancel whatever is still running after ``timeout``."""
        if not self._tasks:
            return
        pending = list(self._tasks)
        logger.info("Waiting for %d background task(s)", len(pending))
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)


background_tasks = BackgroundTasks()


def resolve_mime_type(file_type: Optional[str], file_name: str) -> str:
    """Use the declared type, or guess one from the file name."""
    if file_type and file_type.strip():
        return file_type.split(";")[0].strip().lower()
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or "application/octet-stream"


class IngestionPipeline:
    """Turns a source document into stored, embedded chunks for one owner."""

    def __init__(
        self,
        store: DocumentStore,
        embedding_service: EmbeddingService,
        summarization_chain: Optional[SummarizationChain] = None,
        chunker: Optional[TextChunker] = None,
        fetcher: Optional[DocumentFetcher] = None,
        tasks: Optional[BackgroundTasks] = None,
        chunk_options: Optional[ChunkOptions] = None,
    ):
        self.store = store
        self.embedding_service = embedding_service
        self.summarization_chain = summarization_chain
        self.chunker = chunker or TextChunker()
        self.fetcher = fetcher or DocumentFetcher()
        self.tasks = tasks or background_tasks
        self.chunk_options = chunk_options

    async def _extract(self, data: bytes, mime_type: str) -> str:
        extractor = get_extractor(mime_type)
        if extractor is None or mime_type not in settings.allowed_mime_types:
            logger.warning("Unsupported file type %s; storing placeholder", mime_type)
            return ""
        try:
            result = await extractor.extract(data, mime_type)
        except ExtractionFailure as exc:
            logger.warning("Extraction failed, storing placeholder: %s", exc)
            return ""
        if result.used_ocr:
            logger.info(
                "OCR extracted %d characters (confidence=%s)",
                len(result.text),
                f"{result.confidence:.2f}" if result.confidence is not None else "n/a",
            )
        return result.text

    async def ingest(
        self,
        owner_id: str,
        source_uri: str,
        file_name: str,
        file_type: Optional[str] = None,
    ) -> IngestionResult:
        """Ingest one document.

        Raises:
            IngestionFailure: If downloading, embedding or storage fails. The
                document, when already created, is marked failed first.
        """
        mime_type = resolve_mime_type(file_type, file_name)
        try:
            document = await self.store.create_document(
                owner_id, source_uri, file_name, mime_type
            )
        except Exception as exc:
            raise IngestionFailure(None, exc) from exc

        token = document_id_var.set(document.id)
        try:
            logger.info("Starting ingestion of %s for %s", file_name, owner_id)
            try:
                result, text = await self._run(document.id, owner_id, source_uri, mime_type)
            except Exception as exc:
                logger.exception("Ingestion failed")
                await self._mark_failed(document.id, exc)
                raise IngestionFailure(document.id, exc) from exc

            if self.summarization_chain is not None and not result.empty:
                self.tasks.spawn(
                    self.summarization_chain.summarize_with_failover(document.id, text),
                    name=f"summarize-document-{document.id}",
                )
            logger.info("Ingested %d chunk(s)", result.chunk_count)
            return result
        finally:
            document_id_var.reset(token)

    async def _run(
        self,
        document_id: int,
        owner_id: str,
        source_uri: str,
        mime_type: str,
    ) -> tuple[IngestionResult, str]:
        data = await self.fetcher.fetch(source_uri)
        text = normalize_text(await self._extract(data, mime_type))
        empty = not text
        if empty:
            text = settings.empty_document_placeholder
        await self.store.update_extracted_text(document_id, text)

        chunks = await asyncio.to_thread(self.chunker.chunk_text, text, self.chunk_options)
        if chunks:
            embeddings = await self.embedding_service.embed_batch(
                [chunk.content for chunk in chunks]
            )
            await self.store.store_chunks(
                document_id,
                owner_id,
                [
                    EmbeddedChunk(
                        index=chunk.index,
                        content=chunk.content,
                        token_count=chunk.token_count,
                        embedding=embedding,
                    )
                    for chunk, embedding in zip(chunks, embeddings)
                ],
            )
        await self.store.update_status(document_id, STATUS_COMPLETED)

        chunk_count = await self.store.get_chunk_count(document_id)
        return IngestionResult(document_id, chunk_count, empty=empty), text

    async def _mark_failed(self, document_id: int, exc: BaseException) -> None:
        try:
            await self.store.update_status(document_id, STATUS_FAILED, error=str(exc))
        except Exception:
            logger.warning("Could not mark document as failed", exc_info=True)
