"""Content rewriting: AI-assisted with a deterministic fallback.

The model is asked for a strict three-part answer::

    ===DESCRIPTION===  plain-text summary
    ===HTML===         exactly seven <section> blocks, fixed headings, fixed order
    ===TAGS===         JSON array of 3-8 lowercase tags

The answer is decoded into `DecodedSections`, checked against the
`SECTION_CONTRACT` table, and each field is recovered on its own when it
violates the contract. A failed call never aborts a run: the fallback
template is used instead.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import httpx
from openai import OpenAI, OpenAIError

from .config import Settings
from .errors import EnrichmentError
from .models import RewriteResult
from .normalize import extract_tags
from .sanitize import sanitize_html, strip_document_tags
from .utils import escape_html, html_to_text, truncate_words, uniq_norm_tags

logger = logging.getLogger(__name__)

PLAIN_TEXT_LIMIT = 9000
FALLBACK_PARAGRAPHS = 6
SHORT_WORDS = 45
MIN_HTML_CHARS = 50

SECTION_KEYS = ["about", "responsibilities", "requirements", "benefits", "compensation", "location_hours", "how_to_apply"]

SECTION_HEADINGS: Dict[str, Dict[str, str]] = {
    "pt": {
        "about": "Sobre a Vaga",
        "responsibilities": "Responsabilidades",
        "requirements": "Requisitos",
        "benefits": "Benefícios",
        "compensation": "Remuneração",
        "location_hours": "Local e Horário",
        "how_to_apply": "Como se Candidatar",
    },
    "en": {
        "about": "About the Role",
        "responsibilities": "Responsibilities",
        "requirements": "Requirements",
        "benefits": "Benefits",
        "compensation": "Compensation",
        "location_hours": "Location & Hours",
        "how_to_apply": "How to Apply",
    },
}

FALLBACK_FILLER: Dict[str, Dict[str, str]] = {
    "pt": {
        "about": "<p>Detalhes fornecidos pelo empregador.</p>",
        "responsibilities": "<ul>\n    <li>Executar as atividades principais conforme descrito.</li>\n  </ul>",
        "requirements": "<ul>\n    <li>Experiência relevante ou disposição para aprender.</li>\n  </ul>",
        "benefits": "<ul>\n    <li>Benefícios conforme descrição da vaga.</li>\n  </ul>",
        "compensation": "<p>A ser discutida.</p>",
        "location_hours": "<p>Conforme descrição da vaga.</p>",
        "how_to_apply": "<p>Use o botão “Candidatar-se”.</p>",
    },
    "en": {
        "about": "<p>Details provided by the employer.</p>",
        "responsibilities": "<ul>\n    <li>Carry out the core duties as described.</li>\n  </ul>",
        "requirements": "<ul>\n    <li>Relevant experience or willingness to learn.</li>\n  </ul>",
        "benefits": "<ul>\n    <li>Benefits as stated in the job description.</li>\n  </ul>",
        "compensation": "<p>To be discussed.</p>",
        "location_hours": "<p>As stated in the job description.</p>",
        "how_to_apply": "<p>Use the “Apply” button.</p>",
    },
}

SYSTEM_PROMPT = """You are a senior HR editor for {profession} job postings. Write naturally in {lang}.
OUTPUT CONTRACT - return EXACTLY these three blocks in this order:
===DESCRIPTION=== [40-70 words of plain text. No HTML, quotes or emojis.]
===HTML=== [Clean HTML fragments only; NEVER include <!DOCTYPE>, <html>, <head> or <body>.]
===TAGS=== [Valid JSON array (3-8 items), all lowercase, in {lang}, relevant to {profession}.]

HTML SECTIONS (translate the headings to {lang}; keep this order):
{headings}

HTML RULES:
- Use minimal, valid semantic markup: <section>, <h2>, <p>, <ul>, <li>, <strong>, <em>, <time>, <address>.
- Wrap each block in <section> with its translated <h2> heading. Do not leave sections empty.
- Lists must be scannable: 5-8 items, 4-12 words per item.
- No inline styles, scripts, images or tables.
- No external links unless an explicit application link is present in the user message.
- Use metric units and local formats.

STRICT VALIDATION BEFORE RETURNING:
- DESCRIPTION is plain text without HTML.
- HTML contains exactly seven <section> blocks with translated <h2> headings in the exact order.
- TAGS is a valid JSON array (3-8 items), all lowercase and relevant.
- Do not invent facts about the employer or links.
"""

USER_PROMPT = """Job: {title}
Company: {company}
Text:
{text}"""

MARKER_RE = re.compile(r"===\s*(DESCRIPTION|HTML|TAGS)\s*===", re.I)
JSON_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
SECTION_TAG_RE = re.compile(r"<section\b", re.I)


def _parse_tag_array(body: str) -> Optional[List[str]]:
    match = JSON_ARRAY_RE.search(body or "")
    if not match:
        return None
    try:
        value = json.loads(match.group(0))
    except ValueError:
        return None
    if not isinstance(value, list):
        return None
    return [str(v) for v in value if v is not None]


def _count_sections(body: str) -> Optional[int]:
    return len(SECTION_TAG_RE.findall(body or ""))


def _count_tags(body: str) -> Optional[int]:
    tags = _parse_tag_array(body)
    return None if tags is None else len(tags)


@dataclass(frozen=True)
class SectionRule:
    name: str
    position: int
    counter: Optional[Callable[[str], Optional[int]]] = None
    min_count: int = 0
    max_count: int = 0


# The output contract, one row per delimited section.
SECTION_CONTRACT = (
    SectionRule("DESCRIPTION", 0),
    SectionRule("HTML", 1, _count_sections, 7, 7),
    SectionRule("TAGS", 2, _count_tags, 3, 8),
)


@dataclass
class DecodedSections:
    """A model answer split on its section markers."""

    raw: str
    sections: Dict[str, str] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)
    violations: List[str] = field(default_factory=list)

    def get(self, name: str) -> str:
        return self.sections.get(name, "")

    @property
    def valid(self) -> bool:
        return not self.violations


def validate_sections(decoded: DecodedSections) -> List[str]:
    violations: List[str] = []
    for rule in SECTION_CONTRACT:
        if rule.name not in decoded.sections:
            violations.append(f"missing {rule.name}")
            continue
        if rule.position >= len(decoded.order) or decoded.order[rule.position] != rule.name:
            violations.append(f"{rule.name} out of order")
        if rule.counter is not None:
            count = rule.counter(decoded.sections[rule.name])
            if count is None:
                violations.append(f"{rule.name} unparseable")
            elif not rule.min_count <= count <= rule.max_count:
                violations.append(f"{rule.name} has {count} entries, expected {rule.min_count}-{rule.max_count}")
    return violations


def decode_response(raw: str) -> DecodedSections:
    """Split `raw` on its markers; each section runs to the next marker or the end."""
    decoded = DecodedSections(raw=raw or "")
    markers = list(MARKER_RE.finditer(decoded.raw))
    for i, marker in enumerate(markers):
        name = marker.group(1).upper()
        end = markers[i + 1].start() if i + 1 < len(markers) else len(decoded.raw)
        if name in decoded.sections:
            decoded.violations.append(f"duplicate {name}")
            continue
        decoded.sections[name] = decoded.raw[marker.end():end].strip()
        decoded.order.append(name)
    decoded.violations.extend(validate_sections(decoded))
    return decoded


class ContentRewriter:
    """Produce the final short/long description and tags for one posting."""

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None) -> None:
        self.settings = settings
        if client is None and settings.ai_available:
            client = OpenAI(api_key=settings.openai_api_key, timeout=settings.ai_timeout, max_retries=0)
        self._client = client
        lang = (settings.target_lang or "").lower()
        self._headings = SECTION_HEADINGS.get(lang, SECTION_HEADINGS["en"])
        self._filler = FALLBACK_FILLER.get(lang, FALLBACK_FILLER["en"])

    @property
    def ai_available(self) -> bool:
        return self.settings.ai_enabled and self._client is not None

    def rewrite(self, title: str, company: str, html: str, use_ai: bool = False) -> RewriteResult:
        plain = html_to_text(html)[:PLAIN_TEXT_LIMIT]
        if not (use_ai and self.ai_available):
            return self.fallback(title, company, html, plain)

        try:
            raw = self._complete(title, company, plain)
        except EnrichmentError as exc:
            logger.warning(f"[rewriter] AI call failed for {title!r}, using fallback: {exc}")
            return self.fallback(title, company, html, plain)
        return self._from_response(raw, title, company, html)

    def fallback(self, title: str, company: str, html: str, plain: Optional[str] = None) -> RewriteResult:
        """Deterministic template output; the same input always gives the same result."""
        if plain is None:
            plain = html_to_text(html)[:PLAIN_TEXT_LIMIT]
        paragraphs = [p for p in plain.split("\n") if p.strip()][:FALLBACK_PARAGRAPHS]
        about = "\n".join(f"<p>{escape_html(p)}</p>" for p in paragraphs)

        blocks = []
        for key in SECTION_KEYS:
            body = about if key == "about" and about else self._filler[key]
            blocks.append(f"<section><h2>{escape_html(self._headings[key])}</h2>\n  {body}\n</section>")

        return RewriteResult(
            short=truncate_words(plain, SHORT_WORDS),
            html=sanitize_html("\n\n".join(blocks)),
            tags=self._tags(title, company, html),
            used_ai=False,
        )

    def _tags(self, title: str, company: str, html: str) -> List[str]:
        return extract_tags(title, company, html, self.settings.target_profession)

    def _system_prompt(self) -> str:
        headings = "\n".join(f"{i}) {self._headings[key]}" for i, key in enumerate(SECTION_KEYS, start=1))
        return SYSTEM_PROMPT.format(
            profession=self.settings.target_profession,
            lang=self.settings.target_lang,
            headings=headings,
        )

    def _complete(self, title: str, company: str, plain: str) -> str:
        user = USER_PROMPT.format(title=title or "N/A", company=company or "N/A", text=plain)
        try:
            resp = self._client.chat.completions.create(
                model=self.settings.openai_model,
                temperature=self.settings.openai_temperature,
                messages=[
                    {"role": "system", "content": self._system_prompt()},
                    {"role": "user", "content": user},
                ],
            )
        except (OpenAIError, httpx.HTTPError) as exc:
            raise EnrichmentError(str(exc)) from exc

        choices = getattr(resp, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            raise EnrichmentError("empty completion")
        return content

    def _single_section(self, short: str) -> str:
        return f"<section><h2>{escape_html(self._headings['about'])}</h2><p>{escape_html(short)}</p></section>"

    def _from_response(self, raw: str, title: str, company: str, html: str) -> RewriteResult:
        decoded = decode_response(raw)
        if not decoded.valid:
            logger.warning(f"[rewriter] AI output for {title!r} broke the contract: {'; '.join(decoded.violations)}")

        short = decoded.get("DESCRIPTION") or html_to_text(raw)[:300]
        short = html_to_text(short).strip()[:600]

        html_out = strip_document_tags(decoded.get("HTML"))
        if len(html_out) < MIN_HTML_CHARS:
            html_out = self._single_section(short)

        tags = _parse_tag_array(decoded.get("TAGS"))
        if tags is None:
            tags = self._tags(title, company, html)

        return RewriteResult(short=short, html=sanitize_html(html_out), tags=uniq_norm_tags(tags), used_ai=True)
