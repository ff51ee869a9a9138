"""
Visual enrichment and table summary prompts.

The vision prompt is assembled from an element-type instruction and an
optional domain focus block, so a chart in a trading document is described
with different priorities than a floor plan.

Dependencies: langchain_core.prompts
System role: Prompt templates for the vision and summarization providers
"""

from langchain_core.prompts import ChatPromptTemplate, PromptTemplate

ELEMENT_INSTRUCTIONS: dict[str, str] = {
    "layout_picture": "Analyze this CHART/FIGURE.",
    "layout_table": "Analyze this TABLE.",
    "layout_keyValueRegion": "Analyze this key-value region.",
    "chart": "Analyze this CHART.",
    "diagram": "Analyze this DIAGRAM.",
}

DOMAIN_FOCUS: dict[str, str] = {
    "trading": """SPECIFIC FOCUS FOR TRADING:
- Identify every visible candlestick pattern (doji, hammer, engulfing, ...)
- Extract every visible price level with decimal precision
- Document each price/indicator interaction: position, exact price, indicator type, direction, outcome
- Identify supports and resistances with exact levels
- Note volumes if visible
VERBOSITY: MAXIMUM - every number matters""",
    "finance": """SPECIFIC FOCUS FOR FINANCE:
- Extract all numeric values with units
- Identify trends (increasing, decreasing, stable)
- Note percentages, changes, year-over-year comparisons
- Document legend and axes precisely
VERBOSITY: HIGH - numbers are critical""",
    "architecture": """SPECIFIC FOCUS FOR ARCHITECTURE:
- Identify each room/space with dimensions
- Note orientation (N/S/E/W) if indicated
- Extract measurements in meters/feet
- Identify materials if specified
- Note scales and proportions
VERBOSITY: HIGH for measurements, MEDIUM for descriptions""",
    "medical": """SPECIFIC FOCUS FOR MEDICINE:
- Extract all diagnostic values with units
- Note reference ranges if present
- Identify anomalies against normal ranges
- Use exact medical terminology
VERBOSITY: MAXIMUM - precision is critical""",
    "legal": """SPECIFIC FOCUS FOR LEGAL DOCUMENTS:
- Extract dates, protocol numbers, references
- Identify the parties involved
- Note key clauses
- Document signatures and stamps if visible
VERBOSITY: HIGH for references, MEDIUM for content""",
}

VISION_PROMPT = PromptTemplate.from_template(
    """DOCUMENT CONTEXT: {domain}
{page_line}
{instruction}

{domain_focus}

REQUIRED OUTPUT:
- Structured markdown
- Tables in |...|...| format
- Every numeric value with maximum precision
- If a requested element is NOT present, say so explicitly"""
)

TABLE_SUMMARY_PROMPT = ChatPromptTemplate.from_messages([
    (
        "system",
        "You summarize markdown tables for a search index. Reply with two or three plain "
        "sentences stating what the table compares and its most important values. "
        "Do not use markdown.",
    ),
    ("human", "{table}"),
])


def build_vision_prompt(element_type: str, domain: str, page_number: int | None = None) -> str:
    """
    Render the text part of a vision request.

    Args:
        element_type: Layout element hint; unknown types use the figure instruction
        domain: Resolved document domain
        page_number: Source page, when known

    Returns:
        str: Prompt text
    """
    return VISION_PROMPT.format(
        domain=domain.upper(),
        page_line=f"PAGE: {page_number}" if page_number is not None else "",
        instruction=ELEMENT_INSTRUCTIONS.get(element_type, ELEMENT_INSTRUCTIONS["layout_picture"]),
        domain_focus=DOMAIN_FOCUS.get(domain, ""),
    ).strip()
