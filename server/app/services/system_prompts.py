"""
System prompt templates for care group voice calls.

The instructions sent in ``session.update`` are built once per call from the
care group's context snapshot and the kind of caller on the line.
"""

from app.services.context_resolver import ContextSnapshot
from app.services.scope import CallerKind
from app.services.tool_definitions import TOOL_REGISTRY

# Base prompt with role, boundaries, and speaking style
BASE_SYSTEM_PROMPT = """### Role
You are a warm, professional voice assistant for {recipient_name}'s care group.
You help callers find information about appointments, tasks, documents,
contacts, and recent care activities.

### Read-Only Access
- You can ONLY provide information. You cannot create, modify, or delete anything.
- If asked to make a change, politely explain that you can only look things up
  and suggest they use the care app or speak with the care team.

### Speaking Style
- Speak naturally, as on a phone call; never use markdown, lists, or symbols
- Keep responses under 50 words unless the caller asks for detail
- Be specific about dates and times when giving information
- Ask one clarifying question at a time when a request is ambiguous
- When you need to look something up, tell the caller you are checking
"""

CALLER_CONTEXT = {
    CallerKind.RECIPIENT: """
### Caller
You are speaking with {recipient_first_name}, the care recipient. Be patient and
encouraging, speak clearly, and use their first name occasionally.
""",
    CallerKind.MEMBER: """
### Caller
You are speaking with a member of {recipient_first_name}'s care team. Be efficient
and precise; they are coordinating care and may ask several questions in a row.
""",
}


def _fact(value, fallback: str) -> str:
    return value.strip() if value and value.strip() else fallback


def build_profile_section(context: ContextSnapshot) -> str:
    born = ""
    if context.date_of_birth:
        dob = context.date_of_birth
        born = f", born {dob:%B} {dob.day}, {dob.year}"
    return f"""
### Care Recipient Profile
- Name: {context.recipient_name}{born}
- Description: {_fact(context.profile_description, "No description available")}
- Chronic conditions: {_fact(context.chronic_conditions, "None listed")}
- Mental health: {_fact(context.mental_health, "None listed")}
- Mobility: {_fact(context.mobility, "Not specified")}
- Memory: {_fact(context.memory, "Not specified")}
- Hearing: {_fact(context.hearing, "Not specified")}
- Vision: {_fact(context.vision, "Not specified")}
"""


def build_tools_section() -> str:
    lines = "\n".join(f"- {tool.name}: {tool.description}" for tool in TOOL_REGISTRY.values())
    return f"""
### Function Calling
You have access to these read-only lookups:
{lines}
"""


def build_instructions(context: ContextSnapshot, caller_kind: CallerKind) -> str:
    """
    Build the Realtime session instructions for one call.

    Args:
        context: Care group context snapshot resolved at call start
        caller_kind: Care recipient or care team member

    Returns:
        Complete instructions string
    """
    first_name = context.recipient_first_name or "the care recipient"
    prompt = BASE_SYSTEM_PROMPT.format(recipient_name=context.recipient_name)
    prompt += CALLER_CONTEXT[caller_kind].format(recipient_first_name=first_name)
    prompt += build_profile_section(context)
    prompt += build_tools_section()
    return prompt
