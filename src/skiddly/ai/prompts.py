"""Prompts e formatação para a classificação de ligações."""

from __future__ import annotations

from skiddly.ai.contracts.classification import ClassificationRequest
from skiddly.domain.enums import CallOutcome

OUTCOME_DESCRIPTIONS: dict[CallOutcome, str] = {
    CallOutcome.COMPLETED_PURCHASE: "customer completed the purchase during the call",
    CallOutcome.CUSTOMER_BUSY: "customer said they are busy right now",
    CallOutcome.NOT_INTERESTED: "customer is not interested",
    CallOutcome.WANTS_DISCOUNT: "customer wants a discount",
    CallOutcome.WANTS_FREE_SHIPPING: "customer wants free shipping",
    CallOutcome.RESCHEDULE_REQUEST: "customer asked to be called at another time",
    CallOutcome.ABUSIVE_LANGUAGE: "customer used abusive language",
    CallOutcome.DO_NOT_CALL_REQUEST: "customer asked not to be called again",
    CallOutcome.WILL_THINK_ABOUT_IT: "customer said they will think about it",
    CallOutcome.TECHNICAL_ISSUES: "customer had technical issues with the store or checkout",
    CallOutcome.WRONG_PERSON: "the agent reached the wrong person",
}

_OUTCOME_LIST = "\n".join(
    f'- "{outcome.value}": {OUTCOME_DESCRIPTIONS[outcome]}' for outcome in CallOutcome
)


def get_call_analysis_prompt() -> str:
    """Retorna system prompt do classificador de ligações."""
    return f"""You analyze phone calls made by an abandoned-cart recovery agent.

Read the transcript and respond with a single JSON object in this exact format:
```json
{{
  "summary": "2-3 sentence summary of the call",
  "callOutcome": "one of the outcomes listed below",
  "structuredData": {{
    "customerName": null,
    "customerPhone": null,
    "discountRequested": null,
    "rescheduleRequested": false,
    "rescheduleTime": null,
    "rescheduleDate": null,
    "rescheduleTimezone": null,
    "relativeTime": null,
    "purchaseCompleted": false,
    "technicalIssues": null,
    "additionalNotes": null
  }},
  "confidence": 0.0
}}
```

Outcomes:
{_OUTCOME_LIST}

Rules:
- callOutcome must be exactly one of the listed values.
- Prefer "do_not_call_request" whenever the customer asks to stop calling.
- rescheduleTime uses formats like "3:00 PM" or "15:00".
- rescheduleDate uses "today", "tomorrow" or YYYY-MM-DD.
- rescheduleTimezone keeps the customer's hint (EST, PST, IST, "my time").
- relativeTime keeps phrases like "in 2 hours" or "tomorrow morning".
- confidence is between 0.0 and 1.0.
- Return valid JSON only. Never add text before or after it.
"""


def format_call_analysis_input(request: ClassificationRequest) -> str:
    """Formata a mensagem de usuário com transcrição e contexto temporal."""
    ended_reason = request.ended_reason or "unknown"
    return (
        f"Current date/time ({request.timezone}): {request.as_of}\n"
        f"Call ended reason: {ended_reason}\n\n"
        f"Transcript:\n{request.transcript}"
    )
