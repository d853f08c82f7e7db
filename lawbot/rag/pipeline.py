"""RAG pipeline for corpus ingestion and question answering.

This module provides the IngestionPipeline and QueryPipeline classes.
Both take their external clients as constructor arguments so they can run
against watsonx.ai and Milvus in production or against fakes in tests.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Sequence, Tuple

from lawbot.config import Settings
from lawbot.errors import InvalidInput, UpstreamUnavailable
from lawbot.models import (
    Chunk,
    ChatResult,
    IndexStats,
    IngestionReport,
    RetrievedDoc,
    SourceSnippet,
    UploadReport,
    VectorRecord,
)
from lawbot.rag.chunker import chunk_section, chunk_upload
from lawbot.rag.corpus import load_corpus
from lawbot.rag.pdf_extractor import extract_upload_text
from lawbot.rag.retriever import Retriever

logger = logging.getLogger(__name__)

# Text stored alongside each vector, per call site.
CORPUS_METADATA_TEXT_CHARS = 1000
UPLOAD_METADATA_TEXT_CHARS = 2000

SYSTEM_PROMPT = (
    "You are an expert Indian legal assistant (LawBot) specialising in IPC, BNS, "
    "BSA, and CrPC. You must answer strictly based on the legal CONTEXT provided. "
    "Always explain in simple language, clearly cite the relevant acts and section "
    "numbers, and include a short practical guidance section. If the context does "
    "not contain an answer, say that explicitly instead of guessing. End every "
    "answer with a short disclaimer that this is not formal legal advice. Format "
    "your response in clear Markdown with headings (e.g., '### Relevant sections', "
    "'### Explanation', '### Practical guidance', '### Disclaimer'). Whenever you "
    "list conditions, factors, steps, or pieces of guidance, ALWAYS format them as "
    "proper Markdown lists, with each item starting on its own line using '- ' for "
    "bullets or '1.' for numbered lists."
)

INDEX_NOT_CONFIGURED_ANSWER = (
    "The vector database is not configured on the server. Please set MILVUS_HOST "
    "and MILVUS_COLLECTION (or VECTOR_BACKEND=faiss with FAISS_INDEX_PATH) in the "
    "environment, or use the manual upload/indexing pipeline."
)
NO_MATCHES_ANSWER = (
    "I could not find any matching sections in the vector database for this "
    "question. Please try rephrasing or check that the index is populated."
)
EMPTY_COMPLETION_ANSWER = (
    "I was unable to generate a detailed answer from the dataset and model. "
    "Please try asking your question again with more context."
)


def read_index_stats(index) -> IndexStats:
    """Read index stats, reporting any client failure as UpstreamUnavailable."""
    try:
        return index.describe_stats()
    except UpstreamUnavailable:
        raise
    except Exception as e:
        raise UpstreamUnavailable("index", f"Failed to read index stats: {e}") from e


class IngestionPipeline:
    """Pipeline for loading, chunking, embedding and indexing documents.

    Batches run strictly one after another. A failed batch is recorded in
    the report and the run moves on to the next batch.
    """

    def __init__(
        self,
        settings: Settings,
        embedder,
        index,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize ingestion pipeline.

        Args:
            settings: Application settings.
            embedder: Client exposing embed_texts(texts).
            index: Vector index client (Milvus or FAISS store).
            sleep: Delay function used between batches.
        """
        self.settings = settings
        self.embed = embedder
        self.index = index
        self.sleep = sleep

    def _records_for(
        self, batch: Sequence[Chunk], metadata_text_chars: int
    ) -> List[VectorRecord]:
        embeddings = self.embed.embed_texts([c.text for c in batch])
        if len(embeddings) != len(batch):
            raise UpstreamUnavailable(
                "embeddings",
                f"got {len(embeddings)} vectors for {len(batch)} chunks",
            )
        return [
            VectorRecord(
                id=chunk.id,
                values=list(vector),
                metadata={**chunk.metadata, "text": chunk.text[:metadata_text_chars]},
            )
            for chunk, vector in zip(batch, embeddings)
        ]

    def index_chunks(
        self, chunks: Sequence[Chunk], metadata_text_chars: int
    ) -> Tuple[int, List[str]]:
        """Embed and upsert chunks in sequential batches.

        Args:
            chunks: Chunks to index, in order.
            metadata_text_chars: Chunk text kept in the record metadata.

        Returns:
            Tuple of (indexed_count, errors) with one error per failed batch.
        """
        batch_size = self.settings.batch_size
        total_batches = (len(chunks) + batch_size - 1) // batch_size
        indexed = 0
        errors: List[str] = []

        for start in range(0, len(chunks), batch_size):
            batch = chunks[start : start + batch_size]
            batch_num = start // batch_size + 1
            try:
                logger.debug(f"Processing batch {batch_num}/{total_batches} ({len(batch)} chunks)")
                records = self._records_for(batch, metadata_text_chars)
                self.index.upsert(records)
                indexed += len(batch)
                logger.info(
                    f"Batch {batch_num}/{total_batches} indexed ({indexed}/{len(chunks)} chunks)"
                )
            except Exception as e:
                error_msg = f"Failed to index batch {batch_num}: {e}"
                logger.error(error_msg)
                errors.append(error_msg)

            if batch_num < total_batches and self.settings.batch_delay > 0:
                self.sleep(self.settings.batch_delay)

        if errors:
            logger.warning(f"Indexing completed with {len(errors)} failed batch(es)")
        else:
            logger.info(f"Successfully indexed all {indexed} chunks")
        return indexed, errors

    def run(self, clear_existing: bool = False) -> IngestionReport:
        """Index the whole statute corpus.

        Args:
            clear_existing: Delete every record in the index first.

        Returns:
            IngestionReport with counts, batch errors and skipped sources.

        Raises:
            UpstreamUnavailable: The index cannot be reached, or clearing it failed.
            InvalidInput: The corpus produced no documents.
        """
        logger.info(f"Starting document indexing (clear_existing={clear_existing})")
        read_index_stats(self.index)

        if clear_existing:
            logger.info("Clearing existing vectors")
            self.index.delete_all()

        corpus = load_corpus(self.settings.dataset_dir, self.settings.max_json_files)
        if not corpus.sections:
            raise InvalidInput("No documents found to index")

        indexed_at = datetime.now(timezone.utc).isoformat()
        chunks: List[Chunk] = []
        for section in corpus.sections:
            chunks.extend(chunk_section(section, self.settings.chunk_size, indexed_at))
        logger.info(f"Chunked {len(corpus.sections)} documents into {len(chunks)} chunks")

        indexed, errors = self.index_chunks(chunks, CORPUS_METADATA_TEXT_CHARS)
        stats = read_index_stats(self.index)

        report = IngestionReport(
            total_documents=len(corpus.sections),
            total_chunks=len(chunks),
            total_indexed=indexed,
            vector_count=stats.total_record_count,
            errors=errors,
            skipped_sources=corpus.skipped_sources,
            dropped_files=corpus.dropped_files,
        )
        logger.info(f"Indexing finished: {report.to_summary()}")
        return report

    def ingest_uploads(self, files: Sequence[Tuple[str, bytes]]) -> UploadReport:
        """Chunk and index user-uploaded files.

        Args:
            files: (file_name, content) pairs.

        Returns:
            UploadReport with the number of chunks indexed and any errors.

        Raises:
            InvalidInput: No files were given.
        """
        if not files:
            raise InvalidInput("No files provided. Please attach at least one file.")

        chunks: List[Chunk] = []
        errors: List[str] = []
        for file_name, data in files:
            try:
                raw_text = extract_upload_text(file_name, data)
            except ValueError as e:
                logger.warning(str(e))
                errors.append(str(e))
                continue
            file_chunks = chunk_upload(file_name, raw_text, self.settings.upload_chunk_size)
            logger.info(f"Chunked {file_name} into {len(file_chunks)} chunks")
            chunks.extend(file_chunks)

        if not chunks:
            logger.warning("No text found in uploaded files")
            return UploadReport(file_count=len(files), uploaded_chunks=0, errors=errors)

        logger.info(f"Starting upload of {len(chunks)} chunks from {len(files)} file(s)")
        indexed, batch_errors = self.index_chunks(chunks, UPLOAD_METADATA_TEXT_CHARS)
        return UploadReport(
            file_count=len(files),
            uploaded_chunks=indexed,
            errors=errors + batch_errors,
        )


def context_header(doc: RetrievedDoc) -> str:
    """Citation line for a doc, e.g. "IPC - Section 378: Theft"."""
    header = doc.act
    if doc.section:
        header += f" - Section {doc.section}"
    if doc.title:
        header += f": {doc.title}" if doc.section else f" - {doc.title}"
    return header


def build_context(docs: Sequence[RetrievedDoc]) -> str:
    blocks = [f"{context_header(doc)}\n\n{doc.text}" for doc in docs]
    return "\n\n---\n\n".join(blocks)


def build_user_prompt(question: str, context: str) -> str:
    return f"User question: {question}\n\nCONTEXT FROM LEGAL SECTIONS:\n{context}"


class QueryPipeline:
    """Turns a question into a grounded answer with its sources.

    Retrieval problems degrade to fixed explanatory answers; only a failed
    generation call raises.
    """

    def __init__(self, settings: Settings, retriever: Retriever, generator) -> None:
        self.settings = settings
        self.retriever = retriever
        self.gen = generator

    def answer(self, question: str) -> ChatResult:
        """Answer a legal question from the indexed statutes.

        Args:
            question: User question.

        Returns:
            ChatResult with the answer and the snippets it was grounded on.

        Raises:
            InvalidInput: The question is empty after trimming.
            UpstreamUnavailable: The completion call failed.
        """
        trimmed = (question or "").strip()
        if not trimmed:
            logger.warning("Empty question received")
            raise InvalidInput("Question cannot be empty.")

        logger.info(f"Processing legal question ({len(trimmed)} chars): {trimmed[:50]!r}")

        if not self.settings.index_configured:
            logger.error("Vector index is not configured - cannot answer question")
            return ChatResult(answer=INDEX_NOT_CONFIGURED_ANSWER, sources=[])

        docs = self.retriever.retrieve(trimmed, self.settings.top_k)
        if not docs:
            logger.warning("No matching documents found for question")
            return ChatResult(answer=NO_MATCHES_ANSWER, sources=[])

        context = build_context(docs)
        logger.debug(
            f"Generating answer (context={len(context)} chars, max_tokens={self.settings.max_new_tokens})"
        )
        try:
            completion = self.gen.complete(
                SYSTEM_PROMPT,
                build_user_prompt(trimmed, context),
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_new_tokens,
            )
        except UpstreamUnavailable:
            raise
        except Exception as e:
            logger.error(f"Failed to generate answer: {e}")
            raise UpstreamUnavailable("generation", str(e)) from e

        answer = (completion.text or "").strip()
        return ChatResult(
            answer=answer or EMPTY_COMPLETION_ANSWER,
            sources=[SourceSnippet.from_doc(d) for d in docs],
        )
