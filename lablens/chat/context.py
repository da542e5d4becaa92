"""Grounding for chat turns.

Every turn is sent with a compact digest of the current analysis and the
assistant persona. History is replayed in the service's role vocabulary
because the service keeps no memory between calls.
"""

from lablens.analysis.presentation import patient_first_name
from lablens.models import AnalysisResult, Biomarker, ChatMessage, ChatRole
from lablens.service.base import ServiceTurn

NOT_AVAILABLE = "N/A"

# Session roles to service roles, and back.
SERVICE_ROLES: dict[ChatRole, str] = {
    ChatRole.USER: "user",
    ChatRole.ASSISTANT: "model",
}
SESSION_ROLES: dict[str, ChatRole] = {v: k for k, v in SERVICE_ROLES.items()}


def to_service_turn(message: ChatMessage) -> ServiceTurn:
    return ServiceTurn(role=SERVICE_ROLES[message.role], text=str(message.content))


def from_service_turn(turn: ServiceTurn) -> ChatMessage:
    return ChatMessage(role=SESSION_ROLES[turn.role], content=turn.text)


def replay_history(transcript: list[ChatMessage]) -> list[ServiceTurn]:
    """Translate a transcript into service turns, skipping empty messages."""
    return [to_service_turn(m) for m in transcript if m.content]


def _format_value(value: float) -> str:
    return f"{value:g}"


def _format_marker(marker: Biomarker) -> str:
    return f"{marker.name}: {_format_value(marker.current_value)} {marker.unit} (Ref: {marker.range})"


def build_context_digest(result: AnalysisResult) -> str:
    """Restate the analysis compactly for grounding a chat turn."""
    markers = ", ".join(_format_marker(b) for b in result.biomarkers or [])
    return "\n".join(
        [
            f"- Patient: {result.patient_name or 'Unknown'} "
            f"({result.gender or NOT_AVAILABLE}, Age: {result.age or NOT_AVAILABLE})",
            f"- Clinic: {result.hospital_name or NOT_AVAILABLE}",
            f"- Report Date: {result.collection_date or NOT_AVAILABLE}",
            f"- Biomarkers: {markers or 'None reported'}",
        ]
    )


def build_chat_instruction(result: AnalysisResult) -> str:
    """Persona rules with the live context digest embedded."""
    sample = ", ".join(b.name for b in (result.biomarkers or [])[:3]) or "the reported markers"
    clinic = result.hospital_name or NOT_AVAILABLE
    date = result.collection_date or NOT_AVAILABLE

    return f"""You are the LabLens expert nurse.
You have FULL ACCESS to the patient's analyzed report data:
{build_context_digest(result)}

BEHAVIOR RULES:
1. Data awareness: never say you do not have the report or cannot see the data. You can see everything listed above.
2. Which lab: if asked which lab, reply with the clinic name ({clinic}) and date ({date}), and mention the specific markers you analyzed (for example {sample}).
3. Anxiety handling: never give a simple yes or no verdict on whether something is wrong. Be empathetic, balance focus areas with wins, and point the main focus area toward a conversation with their doctor.
4. Tone: friendly, clear, conversational. No jargon. No bold. No quotes.
5. Grounding: use only the results above. Do not speculate about conditions the data does not support."""


def build_greeting(result: AnalysisResult) -> str:
    """Opening assistant message for a freshly analyzed report."""
    verdict = result.executive_summary or "I've finished reading your results."
    return (
        f"Hi {patient_first_name(result)}, I've finished reading your results. "
        f"{verdict} What would you like to dive into first?"
    )


def explain_prompt(term: str) -> str:
    """Natural-language question for an explain-term request."""
    return f'Can you explain what "{term}" means for my health?'
