"""Tests for the admission gate."""

from unittest.mock import AsyncMock, patch

import pytest

from docintake.intake.exceptions import ClassificationTimeout, QuarantineWriteFailed
from docintake.intake.file_types import build_type_policy
from docintake.intake.gate import AdmissionGate, canonical_file_name
from docintake.intake.models import (
    AdmissionState,
    BlobNameGrammar,
    DecisionSource,
    DocumentClassification,
    RejectionReason,
)
from docintake.intake.quarantine import Quarantine

from samples import HEIC_BYTES, INCOMING, JPEG_BYTES, PDF_BYTES, QUARANTINE, TEXT_BYTES

VALID_PDF = "20240501T101500Z(alice@acme.co.jp)invoice.pdf"


@pytest.fixture
def store():
    return AsyncMock()


@pytest.fixture
def gate(policy, store):
    return AdmissionGate(policy, Quarantine(store, QUARANTINE))


@pytest.mark.asyncio
async def test_valid_pdf_is_admitted(gate, store, make_event):
    outcome = await gate.process(make_event(VALID_PDF, PDF_BYTES))

    assert outcome.state == AdmissionState.ADMITTED
    assert outcome.transitions == [
        AdmissionState.RECEIVED,
        AdmissionState.TYPE_CHECKED,
        AdmissionState.ADMITTED,
    ]
    assert outcome.decision.source == DecisionSource.MAGIC
    assert outcome.document.file_name == "invoice.pdf"
    assert outcome.document.mime_type == "application/pdf"
    assert outcome.document.company == "acme.co.jp"
    assert outcome.quarantine is None
    store.write_bytes.assert_not_awaited()
    store.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_mislabelled_jpeg_gets_canonical_name(gate, make_event):
    outcome = await gate.process(make_event("ts(bob@foo.com)photo.png", JPEG_BYTES))

    assert outcome.state == AdmissionState.ADMITTED
    assert outcome.document.file_name == "photo.jpg"
    assert outcome.document.mime_type == "image/jpeg"


@pytest.mark.asyncio
async def test_invalid_name_is_quarantined_without_sniffing(gate, store, make_event):
    with patch("docintake.intake.gate.sniff") as mock_sniff:
        outcome = await gate.process(make_event("scan.pdf", PDF_BYTES, "application/pdf"))

    mock_sniff.assert_not_called()
    assert outcome.state == AdmissionState.QUARANTINED
    assert outcome.transitions == [AdmissionState.RECEIVED, AdmissionState.QUARANTINED]
    assert outcome.reason == RejectionReason.INVALID_FILENAME
    assert outcome.decision is None
    assert outcome.source_deleted is True

    bucket, path, data, content_type, metadata = store.write_bytes.await_args.args
    assert bucket == QUARANTINE
    assert path == "unknown/2024-06-30/scan.pdf"
    assert data == PDF_BYTES
    assert content_type == "application/pdf"
    assert metadata["reason"] == "invalid_filename"
    store.delete.assert_awaited_once_with(INCOMING, "scan.pdf")


@pytest.mark.asyncio
async def test_disallowed_extension_in_name_is_quarantined(gate, store, make_event):
    with patch("docintake.intake.gate.sniff") as mock_sniff:
        outcome = await gate.process(make_event("ts(bob@foo.com)notes.docx", PDF_BYTES))

    mock_sniff.assert_not_called()
    assert outcome.state == AdmissionState.QUARANTINED
    assert outcome.reason == RejectionReason.UNSUPPORTED_TYPE
    assert outcome.quarantine.destination_path == "foo.com/2024-06-30/notes.docx"


@pytest.mark.asyncio
async def test_unknown_type_is_quarantined_after_type_check(store, make_event):
    gate = AdmissionGate(build_type_policy(), Quarantine(store, QUARANTINE), BlobNameGrammar.HYPHEN)

    outcome = await gate.process(make_event("a@b.c-inbox-ts-readme.xyz", TEXT_BYTES))

    assert outcome.state == AdmissionState.QUARANTINED
    assert outcome.transitions == [
        AdmissionState.RECEIVED,
        AdmissionState.TYPE_CHECKED,
        AdmissionState.QUARANTINED,
    ]
    assert outcome.reason == RejectionReason.UNSUPPORTED_TYPE
    assert outcome.decision.is_unknown
    content_type = store.write_bytes.await_args.args[3]
    assert content_type == "application/octet-stream"


@pytest.mark.asyncio
async def test_heic_needs_extended_formats(store, make_event):
    name = "ts(bob@foo.com)IMG_0001.heic"

    default_gate = AdmissionGate(build_type_policy(), Quarantine(store, QUARANTINE))
    extended_gate = AdmissionGate(
        build_type_policy(enable_extended_formats=True), Quarantine(store, QUARANTINE)
    )

    rejected = await default_gate.process(make_event(name, HEIC_BYTES))
    admitted = await extended_gate.process(make_event(name, HEIC_BYTES))

    assert rejected.state == AdmissionState.QUARANTINED
    assert admitted.state == AdmissionState.ADMITTED
    assert admitted.document.mime_type == "image/heic"


@pytest.mark.asyncio
async def test_handler_receives_admitted_document(policy, store, make_event):
    classification = DocumentClassification(
        doc_type="invoice", confidence=0.9, mime_type="application/pdf", file_extension=".pdf"
    )
    handler = AsyncMock(return_value=classification)
    gate = AdmissionGate(policy, Quarantine(store, QUARANTINE), handler=handler)

    outcome = await gate.process(make_event(VALID_PDF, PDF_BYTES))

    handler.assert_awaited_once()
    document = handler.await_args.args[0]
    assert document.data == PDF_BYTES
    assert document.file_extension == ".pdf"
    assert outcome.classification == classification
    assert outcome.classification_error is None


@pytest.mark.asyncio
async def test_handler_not_called_for_rejected_files(policy, store, make_event):
    handler = AsyncMock()
    gate = AdmissionGate(policy, Quarantine(store, QUARANTINE), handler=handler)

    await gate.process(make_event("garbage", TEXT_BYTES))

    handler.assert_not_awaited()


@pytest.mark.asyncio
async def test_classification_error_is_recorded(policy, store, make_event):
    handler = AsyncMock(side_effect=ClassificationTimeout("still running"))
    gate = AdmissionGate(policy, Quarantine(store, QUARANTINE), handler=handler)

    outcome = await gate.process(make_event(VALID_PDF, PDF_BYTES))

    assert outcome.state == AdmissionState.ADMITTED
    assert outcome.classification is None
    assert outcome.classification_error == "still running"


@pytest.mark.asyncio
async def test_other_handler_errors_propagate(policy, store, make_event):
    handler = AsyncMock(side_effect=RuntimeError("boom"))
    gate = AdmissionGate(policy, Quarantine(store, QUARANTINE), handler=handler)

    with pytest.raises(RuntimeError):
        await gate.process(make_event(VALID_PDF, PDF_BYTES))


@pytest.mark.asyncio
async def test_quarantine_write_failure_propagates(gate, store, make_event):
    store.write_bytes.side_effect = OSError("denied")

    with pytest.raises(QuarantineWriteFailed):
        await gate.process(make_event("scan.pdf", PDF_BYTES))

    store.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_same_event_same_outcome(gate, make_event):
    event = make_event("ts(bob@foo.com)notes.docx", PDF_BYTES)

    first = await gate.process(event)
    second = await gate.process(event)

    assert first.quarantine == second.quarantine
    assert first.reason == second.reason


def test_canonical_file_name():
    assert canonical_file_name("scan.final.JPEG", ".jpg") == "scan.final.jpg"
    assert canonical_file_name("README", ".pdf") == "README.pdf"
    assert canonical_file_name(".pdf", ".pdf") == "document.pdf"
