"""System prompt generation for regression scenarios.

Maps a vertical, channel and feature overrides onto the system prompt the
receptionist model runs under. Output is deterministic: assertions written
against compliance and feature clauses rely on the exact phrasing below.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from app.models.golden_scenario import Channel, FeatureFlag

GENERIC_VERTICAL_NAME = "Local Business"

DEFAULT_VERTICAL_NAMES: Mapping[int, str] = MappingProxyType(
    {
        0: "Generic Local Business",
        1: "Plumbing",
        2: "HVAC",
        3: "Electricians",
        4: "Roofing",
        6: "Pest Control",
        7: "Locksmith",
        8: "Towing",
        14: "Personal Injury Attorney",
        15: "Bail Bonds",
        17: "Dental",
        81: "Medical Spa",
        82: "Chiropractor",
    }
)

DEFAULT_LEGAL_VERTICALS = frozenset({14, 15, 16, 66, 67, 68, 69, 70})
DEFAULT_MEDICAL_VERTICALS = frozenset(
    {17, 81, 82, 83, 84, 85, 86, 87, 88, 89, 90, 91, 92}
)

FLAG_OFF = "OFF"


@dataclass(frozen=True)
class VerticalCatalog:
    """Static vertical lookup data used by the prompt generator.

    A vertical belongs to at most one compliance category.
    """

    names: Mapping[int, str] = field(default_factory=lambda: DEFAULT_VERTICAL_NAMES)
    legal_ids: frozenset[int] = DEFAULT_LEGAL_VERTICALS
    medical_ids: frozenset[int] = DEFAULT_MEDICAL_VERTICALS

    def __post_init__(self) -> None:
        overlap = self.legal_ids & self.medical_ids
        if overlap:
            msg = f"Verticals cannot be both legal and medical: {sorted(overlap)}"
            raise ValueError(msg)

    def name_for(self, vertical_id: int) -> str:
        return self.names.get(vertical_id, GENERIC_VERTICAL_NAME)

    def is_legal(self, vertical_id: int) -> bool:
        return vertical_id in self.legal_ids

    def is_medical(self, vertical_id: int) -> bool:
        return vertical_id in self.medical_ids

    def to_dict(self) -> dict[str, Any]:
        return {
            "verticals": {str(k): v for k, v in sorted(self.names.items())},
            "legal_ids": sorted(self.legal_ids),
            "medical_ids": sorted(self.medical_ids),
        }


DEFAULT_CATALOG = VerticalCatalog()

# (enabled clause, disabled clause) per recognized override key
FEATURE_CLAUSES: tuple[tuple[FeatureFlag, str, str], ...] = (
    (
        FeatureFlag.APPOINTMENT_BOOKING,
        "- Booking ENABLED: You can schedule appointments when requested.\n",
        "- Booking DISABLED: Do not attempt to schedule appointments. "
        "Offer to capture details for callback.\n",
    ),
    (
        FeatureFlag.EMERGENCY_ESCALATION,
        "- Escalation ENABLED: You can dispatch emergency service when the situation is urgent.\n",
        "- Escalation DISABLED: Cannot dispatch immediately. Capture details for callback.\n",
    ),
    (
        FeatureFlag.TRANSFER_TO_HUMAN,
        "- Transfer ENABLED: You can transfer the caller to a human team member when asked.\n",
        "- Transfer DISABLED: Cannot transfer to human. "
        "Focus on capturing information and promising callback.\n",
    ),
    (
        FeatureFlag.PRICE_QUOTING,
        "- Pricing ENABLED: You can provide price quotes and estimates.\n",
        "- Pricing DISABLED: Do not quote specific prices or estimates. "
        "Explain pricing varies.\n",
    ),
)

LEGAL_COMPLIANCE_BLOCK = (
    "\n## LEGAL COMPLIANCE (CRITICAL)\n"
    "- NEVER provide legal advice or interpret laws\n"
    "- NEVER predict case outcomes or guarantee settlements\n"
    "- ALWAYS recommend consulting with a licensed attorney\n"
    "- Only capture case details for attorney review\n"
)

MEDICAL_COMPLIANCE_BLOCK = (
    "\n## MEDICAL COMPLIANCE (CRITICAL)\n"
    "- NEVER provide medical diagnosis or treatment recommendations\n"
    "- NEVER interpret symptoms or suggest conditions\n"
    "- ALWAYS recommend consulting with a healthcare professional\n"
    "- Only capture intake information and schedule appointments\n"
)

UNIVERSAL_RULES_BLOCK = (
    "\n## Universal Rules\n"
    "- Never provide DIY instructions for electrical, gas, or structural work\n"
    "- Never guarantee specific outcomes or timelines\n"
    "- Never make commitments on behalf of the business owner\n"
    "- Always capture lead information: name, phone, reason for contact\n"
)


def _channel_section(channel: str) -> str:
    section = f"## Channel: {channel.upper()}\n"
    if channel == Channel.PHONE.value:
        section += "- Keep responses brief and conversational\n"
        section += "- Focus on capturing essential information\n"
    elif channel == Channel.SMS.value:
        section += "- Keep responses under 160 characters when possible\n"
        section += "- Be extremely concise\n"
    return section


def _feature_section(overrides: Mapping[str, Any]) -> str:
    section = "\n## Feature Configuration\n"
    for flag, enabled, disabled in FEATURE_CLAUSES:
        section += disabled if overrides.get(flag.value) == FLAG_OFF else enabled
    return section


def generate_prompt(
    vertical_id: int | None,
    channel: str,
    overrides: Mapping[str, Any] | None = None,
    catalog: VerticalCatalog = DEFAULT_CATALOG,
) -> str:
    """Build the system prompt for a scenario.

    Args:
        vertical_id: Business vertical; None is treated as 0 (generic).
        channel: Conversation channel ("phone", "sms", "chat", ...).
        overrides: Feature flag overrides; only an exact "OFF" disables a feature.
        catalog: Vertical names and compliance membership sets.

    Returns:
        The system prompt. Identical inputs always produce identical output.
    """
    vid = vertical_id or 0
    overrides = overrides or {}

    prompt = f"You are an AI assistant for {catalog.name_for(vid)}.\n\n"
    prompt += _channel_section(channel)

    if catalog.is_legal(vid):
        prompt += LEGAL_COMPLIANCE_BLOCK
    elif catalog.is_medical(vid):
        prompt += MEDICAL_COMPLIANCE_BLOCK

    prompt += _feature_section(overrides)
    prompt += UNIVERSAL_RULES_BLOCK
    return prompt
