"""Document upload endpoint.

Validates files and forwards them to the retrieval backend for ingestion.
Parsing, chunking and embedding happen in the backend.
"""

import logging
from datetime import UTC, datetime
from pathlib import PurePath

from fastapi import APIRouter, HTTPException, Request, UploadFile, status

from citechat.api.dependencies import get_retrieval_client
from citechat.errors import RetrievalError
from citechat.models.schemas import UploadedDocument, UploadResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload", tags=["upload"])

ALLOWED_EXTENSIONS = {".pdf", ".txt", ".md", ".docx"}
MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10MB


def _validate_file_extension(filename: str | None) -> str:
    """Validate that the file has a supported extension.

    Raises:
        HTTPException: 400 if the name is missing or the type unsupported.
    """
    if not filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Filename is required",
        )

    if PurePath(filename).suffix.lower() not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Allowed types: PDF, TXT, MD, DOCX",
        )

    return filename


async def _read_and_validate_size(file: UploadFile) -> bytes:
    """Read file content and validate size.

    Raises:
        HTTPException: 400 if empty, 413 if over the size limit.
    """
    content = await file.read()

    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Empty file: {file.filename}",
        )

    if len(content) > MAX_UPLOAD_SIZE:
        size_mb = len(content) / (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"File size ({size_mb:.1f}MB) exceeds maximum allowed (10MB)",
        )

    return content


@router.post("", response_model=UploadResponse)
async def upload_documents(files: list[UploadFile], request: Request) -> UploadResponse:
    """Upload documents to the retrieval backend.

    All files are validated before any is forwarded. A backend rejection of
    one file is reported in that file's entry; if every file fails the
    request fails with 502.

    Raises:
        400: Unsupported type, missing name or empty file.
        413: File exceeds 10MB limit.
        502: Backend rejected every file.
    """
    validated: list[tuple[UploadFile, str, bytes]] = []
    for file in files:
        filename = _validate_file_extension(file.filename)
        content = await _read_and_validate_size(file)
        validated.append((file, filename, content))

    retrieval = get_retrieval_client(request)
    uploaded_at = datetime.now(UTC).isoformat()
    documents: list[UploadedDocument] = []

    for file, filename, content in validated:
        try:
            document_id = await retrieval.ingest_document(
                filename=filename,
                content=content,
                content_type=file.content_type,
                metadata={"filename": filename, "uploadedAt": uploaded_at},
            )
        except RetrievalError as e:
            logger.error(f"Failed to ingest {filename}: {e}")
            documents.append(UploadedDocument(filename=filename, success=False, error="Failed to ingest document"))
            continue
        logger.info(f"Ingested {filename} as {document_id}")
        documents.append(UploadedDocument(filename=filename, document_id=document_id, success=True))

    if not any(document.success for document in documents):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to ingest documents",
        )

    return UploadResponse(documents=documents)
