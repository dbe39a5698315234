"""Tests for the document classifier client and polling loop."""

import base64
import json

import httpx
import pytest

from docintake.core.config import Settings
from docintake.intake.classification import (
    ClassificationHandler,
    DocumentIntelligenceClient,
    classification_handler_from_settings,
    classify_document,
)
from docintake.intake.exceptions import ClassificationError, ClassificationTimeout
from docintake.intake.models import AdmittedDocument, OperationHandle, OperationStatus

from samples import PDF_BYTES

ENDPOINT = "https://example.cognitiveservices.azure.com/"
OPERATION_URL = "https://example.cognitiveservices.azure.com/operations/op-1"


@pytest.fixture
def document():
    return AdmittedDocument(
        data=PDF_BYTES,
        file_name="invoice.pdf",
        file_extension=".pdf",
        mime_type="application/pdf",
        sender_email="alice@acme.co.jp",
        company="acme.co.jp",
        received_timestamp="20240501T101500Z",
        source_bucket="incoming-emails",
        source_name="20240501T101500Z(alice@acme.co.jp)invoice.pdf",
    )


class FakeService:
    """Submit/poll double returning a scripted series of statuses."""

    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.submitted = []
        self.polls = 0

    async def submit(self, data):
        self.submitted.append(data)
        return OperationHandle(operation_location=OPERATION_URL)

    async def poll(self, handle):
        self.polls += 1
        return self.statuses.pop(0)


def succeeded(documents):
    return OperationStatus(
        status="succeeded",
        result={"status": "succeeded", "analyzeResult": {"documents": documents}},
    )


@pytest.mark.asyncio
async def test_classify_returns_first_document(document):
    service = FakeService(
        [
            OperationStatus(status="running"),
            succeeded([{"docType": "invoice", "confidence": 0.97}, {"docType": "receipt"}]),
        ]
    )

    result = await classify_document(service, document, max_attempts=5, poll_interval=0)

    assert result.doc_type == "invoice"
    assert result.confidence == 0.97
    assert result.mime_type == "application/pdf"
    assert result.file_extension == ".pdf"
    assert service.submitted == [PDF_BYTES]
    assert service.polls == 2


@pytest.mark.asyncio
async def test_classify_without_documents_has_no_type(document):
    service = FakeService([succeeded([])])

    result = await classify_document(service, document, poll_interval=0)

    assert result.doc_type is None
    assert result.confidence is None


@pytest.mark.asyncio
async def test_failed_operation_raises(document):
    service = FakeService([OperationStatus(status="failed")])

    with pytest.raises(ClassificationError):
        await classify_document(service, document, poll_interval=0)


@pytest.mark.asyncio
async def test_polling_is_bounded(document):
    service = FakeService([OperationStatus(status="running")] * 3)

    with pytest.raises(ClassificationTimeout):
        await classify_document(service, document, max_attempts=3, poll_interval=0)

    assert service.polls == 3


@pytest.mark.asyncio
async def test_handler_uses_its_settings(document):
    service = FakeService([OperationStatus(status="notStarted"), succeeded([{"docType": "form"}])])
    handler = ClassificationHandler(service, max_attempts=2, poll_interval=0)

    result = await handler(document)

    assert result.doc_type == "form"


@pytest.mark.asyncio
async def test_client_submit_and_poll():
    requests = []

    def handle(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "POST":
            return httpx.Response(202, headers={"operation-location": OPERATION_URL})
        return httpx.Response(
            200,
            json={"status": "succeeded", "analyzeResult": {"documents": [{"docType": "invoice"}]}},
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handle)) as http_client:
        client = DocumentIntelligenceClient(ENDPOINT, "secret", "intake-v1", http_client=http_client)

        handle_ = await client.submit(PDF_BYTES)
        status = await client.poll(handle_)

    assert handle_.operation_location == OPERATION_URL
    assert status.succeeded

    submit_request = requests[0]
    assert str(submit_request.url) == (
        "https://example.cognitiveservices.azure.com/documentintelligence/"
        "documentClassifiers/intake-v1:analyze?api-version=2024-11-30"
    )
    assert submit_request.headers["Ocp-Apim-Subscription-Key"] == "secret"
    body = json.loads(submit_request.content)
    assert base64.b64decode(body["base64Source"]) == PDF_BYTES

    assert requests[1].method == "GET"
    assert str(requests[1].url) == OPERATION_URL


@pytest.mark.asyncio
async def test_client_requires_operation_location():
    transport = httpx.MockTransport(lambda request: httpx.Response(202))

    async with httpx.AsyncClient(transport=transport) as http_client:
        client = DocumentIntelligenceClient(ENDPOINT, "secret", "intake-v1", http_client=http_client)

        with pytest.raises(ClassificationError):
            await client.submit(PDF_BYTES)


@pytest.mark.asyncio
async def test_client_http_error_is_classification_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "denied"}))

    async with httpx.AsyncClient(transport=transport) as http_client:
        client = DocumentIntelligenceClient(ENDPOINT, "bad", "intake-v1", http_client=http_client)

        with pytest.raises(ClassificationError):
            await client.submit(PDF_BYTES)
        with pytest.raises(ClassificationError):
            await client.poll(OperationHandle(operation_location=OPERATION_URL))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>gateway</html>"),
        httpx.Response(200, json=["succeeded"]),
    ],
)
async def test_unreadable_poll_body_is_classification_error(response):
    transport = httpx.MockTransport(lambda request: response)

    async with httpx.AsyncClient(transport=transport) as http_client:
        client = DocumentIntelligenceClient(ENDPOINT, "secret", "intake-v1", http_client=http_client)

        with pytest.raises(ClassificationError):
            await client.poll(OperationHandle(operation_location=OPERATION_URL))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "result",
    [
        {"analyzeResult": None},
        {"analyzeResult": {"documents": None}},
        {"analyzeResult": {"documents": "invoice"}},
        {"analyzeResult": {"documents": [None, "invoice"]}},
        {},
    ],
)
async def test_malformed_success_has_no_type(document, result):
    service = FakeService([OperationStatus(status="succeeded", result=result)])

    classification = await classify_document(service, document, poll_interval=0)

    assert classification.doc_type is None


@pytest.mark.asyncio
async def test_malformed_entry_is_skipped(document):
    service = FakeService([succeeded(["junk", {"docType": "receipt", "confidence": 0.5}])])

    classification = await classify_document(service, document, poll_interval=0)

    assert classification.doc_type == "receipt"


@pytest.mark.asyncio
async def test_wrongly_typed_fields_are_classification_error(document):
    service = FakeService([succeeded([{"docType": "invoice", "confidence": "very"}])])

    with pytest.raises(ClassificationError):
        await classify_document(service, document, poll_interval=0)


def test_handler_from_settings():
    assert classification_handler_from_settings(Settings(CLASSIFIER_ENDPOINT="")) is None

    handler = classification_handler_from_settings(
        Settings(
            CLASSIFIER_ENDPOINT=ENDPOINT,
            CLASSIFIER_API_KEY="secret",
            CLASSIFIER_ID="intake-v1",
            CLASSIFIER_MAX_POLL_ATTEMPTS=4,
        )
    )

    assert isinstance(handler, ClassificationHandler)
    assert handler.max_attempts == 4
    assert handler.service.classifier_id == "intake-v1"
