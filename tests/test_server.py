"""Tests for deck2pdf.server: the FastAPI content server."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from deck2pdf.diagrams import DiagramImage, DiagramRenderError
from deck2pdf.server import create_app

from conftest import MINIMAL_DECK

SVG = b'<svg xmlns="http://www.w3.org/2000/svg"></svg>'


@pytest.fixture
def renderer():
    r = MagicMock()
    r.render.return_value = DiagramImage(SVG, "image/svg+xml")
    return r


@pytest.fixture
def client(tmp_deck, diagrams_dir, renderer):
    app = create_app(tmp_deck, diagrams_dir=diagrams_dir, renderer=renderer)
    return TestClient(app)


# ---------------------------------------------------------------------------
# Pages and JSON
# ---------------------------------------------------------------------------

class TestPages:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_root_redirects(self, client):
        resp = client.get("/", follow_redirects=False)
        assert resp.status_code in (302, 307)
        assert resp.headers["location"] == "/presentation/"

    def test_presentation_page(self, client):
        resp = client.get("/presentation/")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert 'id="slide-counter">1 / 5<' in resp.text

    def test_presentation_initial_slide(self, client):
        resp = client.get("/presentation/?slide=4")
        assert 'id="slide-counter">4 / 5<' in resp.text

    def test_deck_json(self, client):
        data = client.get("/api/deck").json()
        assert data["metadata"]["title"] == "Platform Roadmap"
        assert len(data["slides"]) == 5
        assert data["slides"][4]["content"][1]["diagramPath"] == "flows/login.puml"

    def test_slide_json(self, client):
        assert client.get("/api/slides/2").json()["title"] == "Plan"
        assert client.get("/api/slides/9").status_code == 404

    def test_edits_picked_up(self, client, tmp_deck):
        tmp_deck.write_text(MINIMAL_DECK, encoding="utf-8")
        data = client.get("/api/deck").json()
        assert [s["title"] for s in data["slides"]] == ["Intro", "Done"]

    def test_unreadable_deck_yields_empty_deck(self, tmp_path, renderer):
        app = create_app(tmp_path / "missing.md", renderer=renderer)
        client = TestClient(app)
        assert client.get("/api/deck").json()["slides"] == []
        resp = client.get("/presentation/")
        assert resp.status_code == 200
        assert "Slide not found" in resp.text

    def test_parse_cached_between_requests(self, client):
        client.get("/api/deck")
        client.get("/api/deck")
        cache = client.app.state.cache
        assert cache.misses == 1
        assert cache.hits == 1


# ---------------------------------------------------------------------------
# Diagram images
# ---------------------------------------------------------------------------

class TestDiagramRoute:
    def test_inline_diagram(self, client, renderer):
        resp = client.get("/api/slides/5/blocks/0/diagram")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/svg+xml"
        assert resp.content == SVG
        renderer.render.assert_called_once_with("@startuml\nAlice -> Bob: hello\n@enduml")

    def test_referenced_diagram(self, client, renderer):
        resp = client.get("/api/slides/5/blocks/1/diagram")
        assert resp.status_code == 200
        source = renderer.render.call_args[0][0]
        assert "skinparam monochrome true" in source

    @pytest.mark.parametrize("path", [
        "/api/slides/9/blocks/0/diagram",
        "/api/slides/5/blocks/7/diagram",
        "/api/slides/4/blocks/0/diagram",
    ])
    def test_not_found(self, client, path):
        assert client.get(path).status_code == 404

    def test_render_failure_returns_source(self, client, renderer):
        renderer.render.side_effect = DiagramRenderError("service down")
        resp = client.get("/api/slides/5/blocks/0/diagram")
        assert resp.status_code == 502
        body = resp.json()
        assert body["detail"] == "service down"
        assert "Alice -> Bob" in body["source"]

    def test_missing_diagram_file_returns_source(self, client, diagrams_dir):
        (diagrams_dir / "flows" / "login.puml").unlink()
        resp = client.get("/api/slides/5/blocks/1/diagram")
        assert resp.status_code == 502
        assert resp.json()["source"] == "@ref:flows/login.puml"
