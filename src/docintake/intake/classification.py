"""Document classifier client (Azure Document Intelligence REST API)."""

import asyncio
import base64
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic import ValidationError

from docintake.intake.exceptions import ClassificationError, ClassificationTimeout
from docintake.intake.models import (
    AdmittedDocument,
    DocumentClassification,
    OperationHandle,
    OperationStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-11-30"
DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_POLL_INTERVAL_SECONDS = 1.0


class DocumentAnalysisService(Protocol):
    """Long-running analyze operation: submit once, then poll."""

    async def submit(self, data: bytes) -> OperationHandle:
        ...

    async def poll(self, handle: OperationHandle) -> OperationStatus:
        ...


class DocumentIntelligenceClient:
    """Submits documents to a custom classifier and polls for the result."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        classifier_id: str,
        api_version: str = DEFAULT_API_VERSION,
        timeout: int = 30,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.classifier_id = classifier_id
        self.api_version = api_version
        self.timeout = timeout
        self._http_client = http_client

    @property
    def analyze_url(self) -> str:
        return (
            f"{self.endpoint}/documentintelligence/documentClassifiers/"
            f"{self.classifier_id}:analyze?api-version={self.api_version}"
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {"Ocp-Apim-Subscription-Key": self.api_key}
        headers.update(kwargs.pop("headers", {}))
        if self._http_client is not None:
            response = await self._http_client.request(method, url, headers=headers, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        response.raise_for_status()
        return response

    async def submit(self, data: bytes) -> OperationHandle:
        """
        Start a classification operation.

        Raises:
            ClassificationError: If the request fails or no operation URL is returned
        """
        payload = {"base64Source": base64.b64encode(data).decode("ascii")}
        try:
            response = await self._request(
                "POST",
                self.analyze_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            status_code = getattr(getattr(e, "response", None), "status_code", None)
            logger.error(
                "Classifier submit failed",
                extra={
                    "classifier_id": self.classifier_id,
                    "error": str(e),
                    "status_code": status_code,
                },
            )
            raise ClassificationError(f"Classifier submit failed: {e}") from e

        operation_location = response.headers.get("operation-location")
        if not operation_location:
            raise ClassificationError("Classifier response has no operation-location header")

        logger.info(
            "Submitted document for classification",
            extra={"operation_location": operation_location},
        )
        return OperationHandle(operation_location=operation_location)

    async def poll(self, handle: OperationHandle) -> OperationStatus:
        """
        Fetch the current state of an operation.

        Raises:
            ClassificationError: If the request fails or the body is not a JSON object
        """
        try:
            response = await self._request("GET", handle.operation_location)
        except httpx.HTTPError as e:
            raise ClassificationError(f"Classifier poll failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise ClassificationError(f"Classifier poll returned non-JSON body: {e}") from e
        if not isinstance(body, dict):
            raise ClassificationError(
                f"Classifier poll returned {type(body).__name__}, expected an object"
            )

        return OperationStatus(status=str(body.get("status", "unknown")), result=body)


def _documents_of(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Classified documents in an analyze result; malformed entries are dropped."""
    analyze_result = result.get("analyzeResult")
    if not isinstance(analyze_result, dict):
        return []
    documents = analyze_result.get("documents")
    if not isinstance(documents, list):
        return []
    return [doc for doc in documents if isinstance(doc, dict)]


async def classify_document(
    service: DocumentAnalysisService,
    document: AdmittedDocument,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> DocumentClassification:
    """
    Classify an admitted document with bounded polling.

    Args:
        service: Submit/poll capability
        document: Admitted document with canonical type
        max_attempts: Number of polls before giving up
        poll_interval: Seconds to wait before each poll

    Returns:
        DocumentClassification (doc_type is None when nothing was recognized)

    Raises:
        ClassificationError: If the operation fails
        ClassificationTimeout: If it does not succeed within max_attempts polls
    """
    handle = await service.submit(document.data)

    for attempt in range(1, max_attempts + 1):
        await asyncio.sleep(poll_interval)
        status = await service.poll(handle)

        logger.info(
            f"Classification poll (attempt {attempt}/{max_attempts})",
            extra={
                "file_name": document.file_name,
                "attempt": attempt,
                "max_attempts": max_attempts,
                "status": status.status,
            },
        )

        if status.failed:
            raise ClassificationError(
                f"Classification of {document.file_name} ended with status {status.status}"
            )

        if status.succeeded:
            documents = _documents_of(status.result)
            if not documents:
                logger.warning(
                    "No classification result found",
                    extra={"file_name": document.file_name},
                )
                return DocumentClassification(
                    mime_type=document.mime_type,
                    file_extension=document.file_extension,
                    raw=status.result,
                )

            first = documents[0]
            try:
                classification = DocumentClassification(
                    doc_type=first.get("docType"),
                    confidence=first.get("confidence"),
                    mime_type=document.mime_type,
                    file_extension=document.file_extension,
                    raw=status.result,
                )
            except ValidationError as e:
                raise ClassificationError(
                    f"Unreadable classification for {document.file_name}: {e}"
                ) from e
            logger.info(
                "Document classified",
                extra={
                    "file_name": document.file_name,
                    "doc_type": classification.doc_type,
                    "confidence": classification.confidence,
                },
            )
            return classification

    raise ClassificationTimeout(
        f"Classification of {document.file_name} did not finish after {max_attempts} attempts"
    )


class ClassificationHandler:
    """Admission handler that forwards admitted documents to the classifier."""

    def __init__(
        self,
        service: DocumentAnalysisService,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ):
        self.service = service
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval

    async def __call__(self, document: AdmittedDocument) -> DocumentClassification:
        return await classify_document(
            self.service,
            document,
            max_attempts=self.max_attempts,
            poll_interval=self.poll_interval,
        )


def classification_handler_from_settings(config) -> Optional[ClassificationHandler]:
    """Build the classifier handler, or None when the classifier is not configured."""
    if not config.classifier_enabled:
        return None
    client = DocumentIntelligenceClient(
        endpoint=config.CLASSIFIER_ENDPOINT,
        api_key=config.CLASSIFIER_API_KEY,
        classifier_id=config.CLASSIFIER_ID,
        api_version=config.CLASSIFIER_API_VERSION,
        timeout=config.REQUEST_TIMEOUT,
    )
    return ClassificationHandler(
        client,
        max_attempts=config.CLASSIFIER_MAX_POLL_ATTEMPTS,
        poll_interval=config.CLASSIFIER_POLL_INTERVAL_SECONDS,
    )
