"""Prompt text and request body for the design-critique endpoint."""

from __future__ import annotations

from typing import Any

from phiscan.models.analysis import EncodedPayload, ProportionResult

SYSTEM_PROMPT = (
    "You are an elite furniture design critic. Provide detailed, evocative, and academic audits. "
    "Focus on the sculptural silhouette, material presence, and geometric harmonics. "
    "Use a professional and sophisticated tone."
)

INSTRUCTION_TEMPLATE = """Conduct a design audit. Observed Ratio: {ratio} (Phi Target: {target}).

Structure the response as a JSON object with:
- composition: Describe the sculptural silhouette and spatial presence in 2-3 detailed sentences.
- geometry: Analyze how the proportions manifest in structural balance and phi-harmonics.
- styling: Critique the materiality, finish, and design coherence.
- verdict: A singular design classification (e.g., 'Classical Masterpiece')."""

REPORT_FIELDS = ("composition", "geometry", "styling", "verdict")

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {name: {"type": "STRING"} for name in REPORT_FIELDS},
    "required": list(REPORT_FIELDS),
}

MAX_OUTPUT_TOKENS = 1000


def build_instruction(stats: ProportionResult) -> str:
    return INSTRUCTION_TEMPLATE.format(ratio=stats.ratio, target=stats.target)


def build_request_body(
    payload: EncodedPayload,
    stats: ProportionResult,
    max_output_tokens: int = MAX_OUTPUT_TOKENS,
) -> dict[str, Any]:
    """generateContent body: one user turn (instruction + inline image), system role, JSON schema."""
    return {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"text": build_instruction(stats)},
                    {"inlineData": {"mimeType": payload.mime_type, "data": payload.to_base64()}},
                ],
            }
        ],
        "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
        "generationConfig": {
            "responseMimeType": "application/json",
            "maxOutputTokens": max_output_tokens,
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def get_all_templates() -> dict[str, str]:
    return {"system": SYSTEM_PROMPT, "instruction": INSTRUCTION_TEMPLATE}
