"""
Prompt templates for message analysis.
"""

from ..models import CanonicalMessage, ChannelKind

CHANNEL_CONTEXT = {
    ChannelKind.MAIN: (
        "This is from the main title channel where strategic discussions, creative decisions, "
        "and overall project management happen."
    ),
    ChannelKind.PRODUCTION: (
        "This is from the asset production channel where the studio team handles design/motion "
        "work, internal reviews and iterations."
    ),
    ChannelKind.CLIENT: (
        "This is from the external client channel where clients make requests, review assets, "
        "and communicate concerns."
    ),
}

ANALYSIS_SCHEMA_EXAMPLE = """{
  "sentiment": {
    "score": 0.5,
    "label": "positive|neutral|negative",
    "confidence": 0.8
  },
  "entities": [
    {
      "type": "person|project|deliverable|deadline|client|asset",
      "value": "extracted entity",
      "confidence": 0.9
    }
  ],
  "intent": {
    "category": "request|update|concern|approval|question|decision",
    "confidence": 0.8
  },
  "priority": {
    "level": "low|medium|high|urgent",
    "reasons": ["why this priority level"]
  },
  "deliverables": [
    {
      "name": "asset or deliverable name",
      "status": "concept|in-progress|review|approved|delivered",
      "assignee": "person responsible",
      "deadline": "2024-01-15T00:00:00Z",
      "confidence": 0.7
    }
  ],
  "actionItems": [
    {
      "task": "specific action needed",
      "assignee": "person responsible",
      "deadline": "2024-01-15T00:00:00Z",
      "confidence": 0.8
    }
  ]
}"""

MESSAGE_ANALYSIS_PROMPT = """You are analyzing a Slack message from a creative agency's {channel_kind} channel.

{channel_context}

Message Details:
- Author: {author}
- Channel: {channel_kind}
- Text: "{text}"
- Timestamp: {timestamp}

Please analyze this message and return a JSON response with the following structure:
{schema}

IMPORTANT: Return ONLY valid JSON. Do not include any markdown formatting, code blocks, or additional text. Focus on extracting concrete information. If something is unclear or not mentioned, omit it or set confidence low."""


def build_prompt(message: CanonicalMessage) -> str:
    """Render the analysis request for one message. Pure and deterministic."""
    return MESSAGE_ANALYSIS_PROMPT.format(
        channel_kind=message.channel_kind.value,
        channel_context=CHANNEL_CONTEXT[message.channel_kind],
        author=message.author_name,
        text=message.text,
        timestamp=message.occurred_at.isoformat(),
        schema=ANALYSIS_SCHEMA_EXAMPLE,
    )
