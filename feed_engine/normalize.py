"""Normalization & heuristics.

This module contains the deterministic relevance and tagging logic:
- profession keyword matching (plain substring search)
- profession-specific tag vocabulary
- employment-signal tags (remote, full-time, part-time, permanent, contract)

Matching is intentionally substring based. Keeping the tables centralized
makes the system predictable and testable; false positives from substring
collisions are accepted.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Pattern, Tuple

from .utils import html_to_text, uniq_norm_tags

TAG_TEXT_LIMIT = 1000

_TRUCK_DRIVER_TAGS = [
    "categoria e", "categoria a", "cnh", "longa distância", "regional", "local",
    "caminhão-tanque", "carroceria plana", "otr", "cargas perigosas (hazmat)",
]

# Keys are lowercase profession labels as configured in TARGET_PROFESSION.
PROFESSION_TAGS: Dict[str, List[str]] = {
    "warehouse": [
        "armazém", "trabalhador de armazém", "associado de armazém", "operador de armazém",
        "trabalhador geral", "repositor", "separador", "embalador", "separador de pedidos",
        "carregador", "descarregador", "trabalhador de doca", "operador de empilhadeira",
        "operador de empilhadeira elétrica", "manuseador de materiais", "assistente de expedição",
        "assistente de recebimento", "especialista em controle de inventário",
        "supervisor de armazém", "gerente de armazém", "associado de logística",
        "associado de distribuição", "associado da cadeia de suprimentos",
        "estoquista", "almoxarife", "auxiliar de armazém", "operador de paleteira",
        "operador de empilhadeira retrátil", "contador cíclico", "inspector de recebimento",
        "empilhadeira", "empilhadeira retrátil", "expedição", "recebimento", "inventário",
    ],
    "truck driver": _TRUCK_DRIVER_TAGS,
    "motorista": _TRUCK_DRIVER_TAGS,
    "caminhoneiro": _TRUCK_DRIVER_TAGS,
    "software engineer": [
        "javascript", "python", "java", "react", "node", "backend", "frontend", "full stack", "devops",
    ],
    "nurse": [
        "enfermeiro(a)", "técnico(a) de enfermagem", "uti", "emergência", "pediatria",
        "cirúrgico", "cuidados intensivos", "oncologia",
    ],
    "electrician": [
        "comercial", "residencial", "industrial", "aprendiz", "eletricista qualificado", "mestre eletricista",
    ],
    "mechanic": [
        "automotivo", "diesel", "equipamentos pesados", "marítimo", "aeronaves", "certificação ase",
    ],
    "welder": [
        "mig", "tig", "eletrodo revestido", "flux core", "soldagem de tubos", "estrutural", "aço inoxidável",
    ],
}

# Ordered: tags are appended in this order when their pattern matches.
SIGNAL_TAG_RULES: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"remote|remoto|homeoffice|home office|work from home|telecommute|teletrabalho", re.I), "remote"),
    (re.compile(r"vollzeit|full time|full-time|tempo integral", re.I), "full-time"),
    (re.compile(r"teilzeit|part time|part-time|meio período|tempo parcial", re.I), "part-time"),
    (re.compile(r"festanstellung|unbefristet|permanent|efetivo", re.I), "permanent"),
    (re.compile(r"befristet|temporary|zeitarbeit|contract|temporário", re.I), "contract"),
]


def parse_keywords(raw: str) -> List[str]:
    """Split a comma-separated keyword list into lowercase, trimmed, non-empty keywords."""
    return [kw.strip() for kw in (raw or "").lower().split(",") if kw.strip()]


class ProfessionMatcher:
    """Keyword-based relevance filter for a single target profession."""

    def __init__(self, keywords: Iterable[str]) -> None:
        self.keywords = parse_keywords(",".join(keywords))

    def matches(self, title: str, company: str, description: str) -> bool:
        text = f"{title or ''} {company or ''} {description or ''}".lower()
        return any(kw in text for kw in self.keywords)


def profession_vocabulary(profession: str) -> List[str]:
    """Tag vocabulary for a profession; an unknown profession has an empty vocabulary."""
    return PROFESSION_TAGS.get((profession or "").strip().lower(), [])


def extract_tags(title: str, company: str, html: str, profession: str) -> List[str]:
    """Derive up to 8 normalized tags from a posting."""
    body = html_to_text(html or "")[:TAG_TEXT_LIMIT]
    text = f"{title or ''} {company or ''} {body}".lower()

    found = [tag for tag in profession_vocabulary(profession) if tag in text]
    for pattern, tag in SIGNAL_TAG_RULES:
        if pattern.search(text):
            found.append(tag)
    found.append((profession or "").lower())

    return uniq_norm_tags(found)
