"""
Automated PA recommendation: medication + patient → PADecision.

The LLM is an external, non-deterministic dependency. This module's job is
to validate whatever comes back and degrade to NEEDS_REVIEW on any anomaly.
The user only ever sees the sentinel; the distinct cause is logged.
"""

import logging
import threading
from typing import Optional

from pydantic import ValidationError

from formulary_pa.llm import GroqClient, LLMError, parse_json_object
from formulary_pa.prompts.pa_decision_prompt import SYSTEM_PROMPT, build_pa_decision_prompt
from formulary_pa.schemas import Medication, PADecision, PatientInfo
from formulary_pa.validation import validate_decision

logger = logging.getLogger(__name__)

NO_PA_RATIONALE = "This medication does not require prior authorization according to the formulary."
TECHNICAL_ERROR_RATIONALE = "Unable to complete automated review due to a technical error"


def auto_approval() -> PADecision:
    """Deterministic result for medications that carry no PA requirement."""
    return PADecision(
        decision="APPROVED",
        confidence=1.0,
        rationale=NO_PA_RATIONALE,
        missing_information=[],
        suggested_alternatives=[],
    )


def needs_review_fallback() -> PADecision:
    return PADecision(
        decision="NEEDS_REVIEW",
        confidence=0.0,
        rationale=TECHNICAL_ERROR_RATIONALE,
        missing_information=["Technical error occurred"],
        suggested_alternatives=[],
    )


class PAAnalyzer:
    def __init__(self, client=None) -> None:
        # Built on first use so a missing API key only matters for PA-required drugs
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def client(self):
        # handlers run in a threadpool; build the Groq client once
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = GroqClient()
        return self._client

    def analyze(self, medication: Medication, patient: PatientInfo) -> PADecision:
        """
        Ask the LLM for a decision on a PA-required medication.

        Never raises for LLM problems: transport, parse and validation
        failures all return the NEEDS_REVIEW fallback.
        """
        prompt = build_pa_decision_prompt(medication, patient)
        logger.info("Requesting PA decision for medication id=%s (%s)", medication.id, medication.name)

        try:
            raw = self.client.generate(SYSTEM_PROMPT, prompt)
        except (LLMError, ValueError) as exc:
            return self._fallback("transport", medication, exc)

        try:
            payload = parse_json_object(raw)
        except ValueError as exc:
            return self._fallback("parse", medication, exc, raw=raw)

        errors = validate_decision(payload)
        if errors:
            return self._fallback("validation", medication, "; ".join(errors), raw=raw)

        try:
            decision = PADecision.model_validate({
                "decision": payload["decision"],
                "confidence": payload["confidence"],
                "rationale": payload["rationale"],
                "missingInformation": payload.get("missingInformation") or [],
                "suggestedAlternatives": payload.get("suggestedAlternatives") or [],
            })
        except ValidationError as exc:
            return self._fallback("validation", medication, exc, raw=raw)

        logger.info(
            "PA decision for medication id=%s: %s (confidence=%.2f)",
            medication.id, decision.decision, decision.confidence,
        )
        return decision

    def _fallback(self, cause: str, medication: Medication, detail, raw: Optional[str] = None) -> PADecision:
        logger.warning(
            "PA analysis %s failure for medication id=%s: %s", cause, medication.id, detail
        )
        if raw is not None:
            logger.debug("Raw LLM response: %s", raw)
        return needs_review_fallback()
