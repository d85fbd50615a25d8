"""Ingest orchestration shared by the API and the CLI.

Uploads and scrapes store their text first, then try to summarize it. That
summarize step is best-effort: any failure is logged and the stored entity
simply has no cached summary yet.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from rfpdesk.config import RfpDeskConfig
from rfpdesk.db.models import Document, KnowledgeFile, Summary, WebSource, new_id
from rfpdesk.db.repository import Repository
from rfpdesk.errors import NotFoundError
from rfpdesk.ingest import parse_document
from rfpdesk.ingest.sections import extract_key_information
from rfpdesk.ingest.summarizer import DocumentSummarizer
from rfpdesk.ingest.summary_cache import SummaryCache
from rfpdesk.ingest.web import WebScraper

logger = logging.getLogger(__name__)


def summarize_entity(
    repo: Repository,
    kind: str,
    entity_id: str,
    text: str,
    label: str,
    project_type: str,
    cfg: RfpDeskConfig,
    *,
    force: bool = False,
) -> tuple[Summary, bool]:
    """Explicit summarize: return the cached summary or generate one.

    Returns ``(summary, cached)``. Errors propagate to the caller.
    """
    cache = SummaryCache(repo, kind)
    return cache.get_or_create(
        entity_id,
        text,
        DocumentSummarizer(cfg.summarizer),
        label=label,
        project_type=project_type,
        force=force,
    )


def auto_summarize(
    repo: Repository,
    kind: str,
    entity_id: str,
    text: str,
    label: str,
    project_type: str,
    cfg: RfpDeskConfig,
) -> Summary | None:
    """Best-effort summarize after an upload or scrape; never raises."""
    if not text or not text.strip():
        return None
    try:
        summary, _cached = summarize_entity(
            repo, kind, entity_id, text, label, project_type, cfg, force=True
        )
    except Exception:
        logger.exception("Automatic summary of %s %s (%s) failed", kind, entity_id, label)
        return None
    return summary


def _store_upload(src: Path, upload_dir: Path, stored_name: str) -> Path:
    upload_dir.mkdir(parents=True, exist_ok=True)
    target = upload_dir / stored_name
    shutil.copyfile(src, target)
    return target


def ingest_document(
    repo: Repository,
    project_id: str,
    project_type: str,
    src: Path,
    filename: str,
    cfg: RfpDeskConfig,
) -> Document:
    """Extract *src*, store it as a project Document, then auto-summarize.

    Raises:
        UnsupportedFileTypeError: If the file type is not supported.
        ExtractionError: If the file cannot be parsed.
    """
    parsed = parse_document(src, filename)
    doc_id = new_id()
    safe_name = Path(filename).name
    stored = _store_upload(src, Path(cfg.storage.upload_dir) / project_id, f"{doc_id}_{safe_name}")
    doc = repo.add_document(
        Document(
            id=doc_id,
            project_id=project_id,
            filename=safe_name,
            file_type=parsed.metadata.get("file_type", ""),
            file_path=str(stored),
            size=src.stat().st_size,
            content=parsed.text,
            key_info=extract_key_information(parsed.text),
            metadata=parsed.metadata,
        )
    )
    logger.info("Stored document %s (%s, %d chars) in project %s",
                doc.id, safe_name, len(parsed.text), project_id)
    auto_summarize(repo, "document", doc.id, doc.content, safe_name, project_type, cfg)
    refreshed = repo.get_document(project_id, doc.id)
    if refreshed is None:
        raise NotFoundError("Document", doc.id)
    return refreshed


def ingest_web_source(
    repo: Repository,
    project_id: str,
    project_type: str,
    url: str,
    cfg: RfpDeskConfig,
    scraper: WebScraper | None = None,
) -> WebSource:
    """Scrape *url*, store it as a WebSource, then auto-summarize.

    Raises:
        InvalidInputError: For a disallowed or malformed URL.
        ScrapeError: If the page could not be fetched or rendered.
    """
    scraper = scraper or WebScraper(cfg.scraper)
    page = scraper.scrape(url)
    source = repo.add_web_source(
        WebSource(
            id=new_id(),
            project_id=project_id,
            url=page.url,
            title=page.title,
            content=page.content,
            metadata={"method": page.method, "scraped_at": page.scraped_at,
                      "length": len(page.content)},
        )
    )
    logger.info("Stored web source %s (%s via %s) in project %s",
                source.id, page.url, page.method, project_id)
    auto_summarize(repo, "web_source", source.id, source.content, page.title or page.url,
                   project_type, cfg)
    refreshed = repo.get_web_source(project_id, source.id)
    if refreshed is None:
        raise NotFoundError("Web source", source.id)
    return refreshed


def ingest_knowledge_file(
    repo: Repository, src: Path, filename: str, category: str, cfg: RfpDeskConfig
) -> KnowledgeFile:
    """Extract *src* into the company knowledge base. Not auto-summarized."""
    parsed = parse_document(src, filename)
    kf_id = new_id()
    safe_name = Path(filename).name
    stored = _store_upload(src, Path(cfg.storage.upload_dir) / "knowledge", f"{kf_id}_{safe_name}")
    return repo.add_knowledge_file(
        KnowledgeFile(
            id=kf_id,
            category=category,
            filename=stored.name,
            original_filename=safe_name,
            file_type=parsed.metadata.get("file_type", ""),
            content=parsed.text,
            metadata={**parsed.metadata, "size": src.stat().st_size},
        )
    )
