"""
PAAnalyzer against a fake LLM client: every anomaly degrades to NEEDS_REVIEW.
"""

import json
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import FakeLLMClient
from formulary_pa.llm import LLMError, parse_json_object
from formulary_pa.schemas import Medication, PatientInfo
from formulary_pa.services import pa_analyzer
from formulary_pa.services.pa_analyzer import (
    TECHNICAL_ERROR_RATIONALE,
    PAAnalyzer,
    auto_approval,
)

MEDICATION = Medication(
    id=7,
    formulary_id=1,
    name="atorvastatin",
    brand_name="LIPITOR",
    formulary_status="preferred-with-pa",
    requires_pa=True,
)
PATIENT = PatientInfo(age=52, gender="male", diagnosis_code="E78.5")

DENIAL = {
    "decision": "DENIED",
    "confidence": 0.85,
    "rationale": "No documented statin trials.",
    "missingInformation": ["Prior simvastatin trial"],
    "suggestedAlternatives": ["simvastatin"],
}


def _assert_fallback(decision):
    assert decision.decision == "NEEDS_REVIEW"
    assert decision.confidence == 0.0
    assert decision.rationale == TECHNICAL_ERROR_RATIONALE
    assert decision.missing_information == ["Technical error occurred"]


def test_valid_reply_is_returned():
    client = FakeLLMClient(DENIAL)
    decision = PAAnalyzer(client=client).analyze(MEDICATION, PATIENT)

    assert decision.decision == "DENIED"
    assert decision.confidence == 0.85
    assert decision.suggested_alternatives == ["simvastatin"]
    assert len(client.calls) == 1
    assert "- Diagnosis Code: E78.5" in client.calls[0]


def test_fenced_reply_is_parsed():
    reply = "```json\n" + json.dumps(DENIAL) + "\n```"
    decision = PAAnalyzer(client=FakeLLMClient(reply)).analyze(MEDICATION, PATIENT)
    assert decision.decision == "DENIED"


def test_missing_list_fields_default_to_empty():
    reply = {"decision": "APPROVED", "confidence": 0.9, "rationale": "Criteria met."}
    decision = PAAnalyzer(client=FakeLLMClient(reply)).analyze(MEDICATION, PATIENT)
    assert decision.missing_information == []
    assert decision.suggested_alternatives == []


def test_non_json_reply_needs_review():
    decision = PAAnalyzer(client=FakeLLMClient("I think it should be approved.")).analyze(MEDICATION, PATIENT)
    _assert_fallback(decision)


def test_broken_json_needs_review():
    decision = PAAnalyzer(client=FakeLLMClient('{"decision": "APPROVED", ')).analyze(MEDICATION, PATIENT)
    _assert_fallback(decision)


def test_out_of_range_confidence_needs_review():
    reply = dict(DENIAL, confidence=7)
    decision = PAAnalyzer(client=FakeLLMClient(reply)).analyze(MEDICATION, PATIENT)
    _assert_fallback(decision)


def test_unknown_decision_needs_review():
    reply = dict(DENIAL, decision="PENDING")
    decision = PAAnalyzer(client=FakeLLMClient(reply)).analyze(MEDICATION, PATIENT)
    _assert_fallback(decision)


def test_transport_error_needs_review():
    client = FakeLLMClient(LLMError("connection reset"))
    decision = PAAnalyzer(client=client).analyze(MEDICATION, PATIENT)
    _assert_fallback(decision)


def test_auto_approval():
    decision = auto_approval()
    assert decision.decision == "APPROVED"
    assert decision.confidence == 1.0
    assert decision.missing_information == []
    assert decision.suggested_alternatives == []


def test_parse_json_object_rejects_text_without_braces():
    with pytest.raises(ValueError):
        parse_json_object("no json here")


def test_lazy_client_is_built_once_across_threads(monkeypatch):
    built = []
    barrier = threading.Barrier(8)

    class CountingClient:
        def __init__(self):
            built.append(self)

    monkeypatch.setattr(pa_analyzer, "GroqClient", CountingClient)
    analyzer = PAAnalyzer()

    def first_use():
        barrier.wait()
        return analyzer.client

    with ThreadPoolExecutor(max_workers=8) as pool:
        clients = list(pool.map(lambda _: first_use(), range(8)))

    assert len(built) == 1
    assert all(c is built[0] for c in clients)
