"""
Document context resolution for visual enrichment.

Picks the domain used to steer the vision prompt: an explicit context on the
queue item wins, otherwise the domain is inferred by keyword matching on the
document's folder and category, otherwise it falls back to "general". The
source of the decision is returned alongside it so inferred and default
domains can be measured separately from explicit ones.

Dependencies: pydantic
System role: Context step of the visual enrichment worker
"""

import enum
import logging
import re

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN = "general"

# Checked in order; the first domain with a matching keyword wins.
DOMAIN_KEYWORDS: dict[str, tuple[str, ...]] = {
    "trading": ("trading", "trader", "forex", "candlestick", "crypto", "tradingview", "scalping"),
    "finance": ("finance", "financial", "bilancio", "accounting", "budget", "invest", "bank", "economics"),
    "medical": ("medical", "medicine", "clinical", "health", "pharma", "diagnos", "patient"),
    "legal": ("legal", "law", "contract", "compliance", "regulation", "gdpr", "court"),
    "architecture": ("architecture", "architect", "floor plan", "floorplan", "building", "construction"),
}


class ContextSource(str, enum.Enum):
    EXPLICIT = "explicit"
    INFERRED = "inferred"
    DEFAULT = "default"


class DocumentContext(BaseModel):
    """Resolved domain and where it came from."""

    domain: str
    source: ContextSource

    def as_payload(self) -> dict:
        return {"domain": self.domain, "source": self.source.value}


def infer_domain(*hints: str | None) -> str | None:
    """
    Match folder/category hints against the keyword table.

    Args:
        *hints: Folder name, category, or similar free text

    Returns:
        str | None: Matched domain, or None when nothing matches
    """
    haystack = " ".join(h for h in hints if h).lower()
    if not haystack:
        return None
    normalized = re.sub(r"[_\-/]+", " ", haystack)
    for domain, keywords in DOMAIN_KEYWORDS.items():
        if any(keyword in normalized for keyword in keywords):
            return domain
    return None


def resolve_document_context(
    explicit: dict | None,
    folder: str | None = None,
    category: str | None = None,
) -> DocumentContext:
    """
    Resolve the domain for a visual element.

    Args:
        explicit: document_context stored on the queue item
        folder: Document folder hint
        category: Document category hint

    Returns:
        DocumentContext: Domain with its source
    """
    domain = (explicit or {}).get("domain")
    if isinstance(domain, str) and domain.strip():
        context = DocumentContext(domain=domain.strip().lower(), source=ContextSource.EXPLICIT)
        logger.info(f"{__name__}:resolve - Using explicit context '{context.domain}'")
        return context

    inferred = infer_domain(folder, category)
    if inferred:
        logger.info(
            f"{__name__}:resolve - Inferred context '{inferred}'",
            extra={"folder": folder, "category": category},
        )
        return DocumentContext(domain=inferred, source=ContextSource.INFERRED)

    logger.info(
        f"{__name__}:resolve - No context match, defaulting to '{DEFAULT_DOMAIN}'",
        extra={"folder": folder, "category": category},
    )
    return DocumentContext(domain=DEFAULT_DOMAIN, source=ContextSource.DEFAULT)
