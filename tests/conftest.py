"""Shared fixtures for feed engine tests."""

from contextlib import contextmanager
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from feed_engine.config import Settings
from feed_engine.sources.base import FeedSource
from feed_engine.storage import JobStore


SECTION_NAMES = [
    "Sobre a Vaga", "Responsabilidades", "Requisitos", "Benefícios",
    "Remuneração", "Local e Horário", "Como se Candidatar",
]


def make_feed(items, root="jobs", item_tag="job"):
    """Build feed bytes from a list of {tag: text} dicts."""
    parts = [f"<?xml version='1.0' encoding='UTF-8'?><{root}>"]
    for item in items:
        parts.append(f"<{item_tag}>")
        for tag, text in item.items():
            parts.append(f"<{tag}><![CDATA[{text}]]></{tag}>")
        parts.append(f"</{item_tag}>")
    parts.append(f"</{root}>")
    return "".join(parts).encode("utf-8")


def ai_output(description="Dirija caminhões pesados em rotas regionais.", sections=7,
              tags='["caminhoneiro", "cnh", "Rota Regional"]', order=("DESCRIPTION", "HTML", "TAGS")):
    """A model answer in the three-section format."""
    html = "\n".join(
        f"<section><h2>{SECTION_NAMES[i % 7]}</h2><p>Conteúdo da seção número {i + 1}.</p></section>"
        for i in range(sections)
    )
    bodies = {"DESCRIPTION": description, "HTML": html, "TAGS": tags}
    return "\n".join(f"==={name}===\n{bodies[name]}" for name in order)


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeSource(FeedSource):
    """In-memory feed source yielding pre-split chunks."""

    name = "fake"

    def __init__(self, data=b"", chunks=None):
        self.chunks = chunks if chunks is not None else [data]
        self.opened = 0

    @contextmanager
    def open(self, url):
        self.opened += 1
        yield iter(self.chunks)


@pytest.fixture
def settings():
    return Settings(
        feed_url="https://feeds.example.com/jobs.xml",
        ai_enabled=False,
        profession_keywords=["caminhoneiro", "motorista de carreta"],
        target_profession="caminhoneiro",
        target_lang="pt",
        site_url="https://vagas.example.com.br",
        db_path=":memory:",
        max_jobs=1000,
    )


@pytest.fixture
def ai_settings(settings):
    return settings.model_copy(update={"ai_enabled": True, "openai_api_key": "sk-test"})


@pytest.fixture
def store():
    s = JobStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def fake_client():
    """OpenAI client stand-in that returns a contract-conforming answer."""
    client = MagicMock()
    client.chat.completions.create.return_value = completion(ai_output())
    return client
