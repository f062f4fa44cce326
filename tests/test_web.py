"""Tests for the Flask API."""

import pytest

from poetik.collaborators import Collaborators
from poetik.orchestrator import Orchestrator
from web.app import _active_runs, _apply_web_config, _run_pipeline_in_thread, create_app

from fakes import LexiconSentiment


@pytest.fixture
def client(config, collaborators):
    app = create_app(config=config, collaborators=collaborators)
    app.config["TESTING"] = True
    return app.test_client()


class TestAnalyzeEndpoint:
    def test_sync_run(self, client, poem):
        resp = client.post("/api/analyze", json={"text": poem, "sync": True})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "completed"
        assert data["markdown"].startswith("# Textanalyse")
        assert data["json_report"]["sentiment"]["overall"]["label"] == "positive"

    def test_sync_with_aspects(self, client, poem):
        resp = client.post("/api/analyze", json={"text": poem, "sync": True, "aspects": ["syntax"]})
        data = resp.get_json()
        assert data["json_report"]["sentiment"] is None
        assert data["json_report"]["style"] is not None

    def test_empty_text(self, client):
        resp = client.post("/api/analyze", json={"text": "   "})
        assert resp.status_code == 400

    def test_too_long(self, client):
        resp = client.post("/api/analyze", json={"text": "Wort " * 3000})
        assert resp.status_code == 400
        assert "character limit" in resp.get_json()["error"]

    def test_validation_error(self, client):
        resp = client.post("/api/analyze", json={"text": "kurz", "sync": True})
        assert resp.status_code == 400
        assert "too short" in resp.get_json()["error"]

    def test_unknown_aspect(self, client, poem):
        resp = client.post("/api/analyze", json={"text": poem, "sync": True, "aspects": ["reim"]})
        assert resp.status_code == 400


class TestBackgroundRuns:
    def test_pipeline_thread_completes(self, config, poem):
        orch = Orchestrator(config, Collaborators(sentiment=LexiconSentiment()))
        _active_runs["bg-1"] = {"status": "running", "progress": 0.0, "stage": "starting", "cancel": False}
        _run_pipeline_in_thread("bg-1", orch, poem, None)
        info = _active_runs.pop("bg-1")
        assert info["status"] == "completed"
        assert info["progress"] == 1.0
        assert "markdown" in info

    def test_pipeline_thread_cancelled(self, config, poem):
        orch = Orchestrator(config, Collaborators())
        _active_runs["bg-2"] = {"status": "running", "progress": 0.0, "stage": "starting", "cancel": True}
        _run_pipeline_in_thread("bg-2", orch, poem, None)
        info = _active_runs.pop("bg-2")
        assert info["status"] == "cancelled"
        assert info["stage"] == "tokenization"

    def test_pipeline_thread_error(self, config):
        orch = Orchestrator(config, Collaborators())
        _active_runs["bg-3"] = {"status": "running", "progress": 0.0, "stage": "starting", "cancel": False}
        _run_pipeline_in_thread("bg-3", orch, "zu kurz", None)
        info = _active_runs.pop("bg-3")
        assert info["status"] == "error"
        assert "too short" in info["error"]

    def test_status_and_result(self, client):
        _active_runs["bg-4"] = {
            "status": "completed", "stage": "done", "progress": 1.0,
            "markdown": "# Textanalyse", "json_report": {"text": "x"},
        }
        try:
            status = client.get("/api/status/bg-4").get_json()
            assert status["status"] == "completed"
            result = client.get("/api/result/bg-4").get_json()
            assert result["markdown"] == "# Textanalyse"
        finally:
            _active_runs.pop("bg-4", None)

    def test_unknown_run(self, client):
        assert client.get("/api/status/nope").status_code == 404
        assert client.get("/api/result/nope").status_code == 404
        assert client.post("/api/cancel/nope").status_code == 404

    def test_cancel_running(self, client):
        _active_runs["bg-5"] = {"status": "running", "progress": 0.1, "stage": "tokenization", "cancel": False}
        try:
            resp = client.post("/api/cancel/bg-5")
            assert resp.get_json()["status"] == "cancelling"
            assert _active_runs["bg-5"]["cancel"] is True
        finally:
            _active_runs.pop("bg-5", None)


class TestOtherEndpoints:
    def test_word(self, client, poem):
        resp = client.post("/api/word", json={"word": "Sonne", "context": poem})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["token"]["text"] == "Sonne"
        assert data["sentiment"]["label"] == "positive"

    def test_word_missing(self, client, poem):
        assert client.post("/api/word", json={"context": poem}).status_code == 400
        resp = client.post("/api/word", json={"word": "Mond", "context": poem})
        assert resp.status_code == 400

    def test_compare(self, client, poem):
        other = "Der Tag war traurig und dunkel."
        resp = client.post("/api/compare", json={"first": poem, "second": other})
        assert resp.status_code == 200
        assert resp.get_json()["sentiment_similar"] is False

    def test_compare_requires_two(self, client, poem):
        assert client.post("/api/compare", json={"first": poem}).status_code == 400

    def test_config_is_redacted(self, config, collaborators):
        config.openai_api_key = "sk-abcdefghijklmnopqrstuvwxyz123456"
        client = create_app(config=config, collaborators=collaborators).test_client()
        data = client.get("/api/config").get_json()
        assert "abcdefghijklmnopqrstuvwxyz" not in str(data)


class TestWebOverrides:
    def test_safe_subset_only(self, config):
        _apply_web_config(config, {
            "verbosity": 2,
            "openai_api_key": "sk-injected",
            "thresholds": {"rhyme_similarity": 0.6, "unknown": 1},
            "processing": {"batch_size": "lots"},
        })
        assert config.verbosity == 2
        assert config.openai_api_key != "sk-injected"
        assert config.thresholds.rhyme_similarity == 0.6
        assert config.processing.batch_size == 16
