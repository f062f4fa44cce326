"""Flask web application for poetik."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import threading
from pathlib import Path
from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from werkzeug.middleware.proxy_fix import ProxyFix

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv()

from poetik.analyzers.report_builder import build_export, build_markdown_report
from poetik.collaborators import Collaborators
from poetik.config import PipelineConfig
from poetik.errors import AnalysisCancelled, ValidationError
from poetik.logger import (
    generate_run_id, list_runs, list_logs, read_log,
    RUNS_DIR,
)
from poetik.models import AnalysisReport
from poetik.orchestrator import Orchestrator

logger = logging.getLogger("poetik")

bp = Blueprint("main", __name__)

_active_runs: dict[str, dict] = {}
_active_runs_lock = threading.Lock()

URL_PREFIX = os.getenv("URL_PREFIX", "")
CONFIG_PATH = os.getenv("POETIK_CONFIG", "config.json")


def _load_config(overrides: Optional[dict] = None) -> PipelineConfig:
    config = current_app.config.get("POETIK_CONFIG")
    if config is None:
        config = PipelineConfig.load(config_path=CONFIG_PATH)
    else:
        config = PipelineConfig._from_dict(config.to_dict(safe=False))
    if overrides:
        _apply_web_config(config, overrides)
    return config


def _orchestrator(config: PipelineConfig, **kwargs) -> Orchestrator:
    collaborators: Optional[Collaborators] = current_app.config.get("POETIK_COLLABORATORS")
    return Orchestrator(config=config, collaborators=collaborators, **kwargs)


@bp.route("/api/config", methods=["GET"])
def get_config():
    return jsonify(_load_config().to_dict(safe=True))


@bp.route("/api/analyze", methods=["POST"])
def analyze():
    """Start an analysis run.

    Runs in a background thread unless ``sync`` is set, in which case the
    finished report is returned directly.
    """
    data = request.get_json(force=True, silent=True) or {}
    text = data.get("text", "")
    aspects = data.get("aspects")
    config = _load_config(data.get("config", {}))

    if not isinstance(text, str) or not text.strip():
        return jsonify({"error": "Text is required."}), 400
    if len(text) > config.max_input_chars:
        return jsonify({
            "error": f"Text exceeds {config.max_input_chars} character limit (got {len(text)})."
        }), 400

    run_id = generate_run_id()
    orchestrator = _orchestrator(config, run_id=run_id)

    if data.get("sync"):
        try:
            report = asyncio.run(orchestrator.analyze(text, aspects))
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify({
            "run_id": run_id,
            "status": "completed",
            "markdown": build_markdown_report(report),
            "json_report": build_export(report),
        })

    with _active_runs_lock:
        _active_runs[run_id] = {
            "status": "running",
            "progress": 0.0,
            "stage": "starting",
            "cancel": False,
        }

    thread = threading.Thread(
        target=_run_pipeline_in_thread,
        args=(run_id, orchestrator, text, aspects),
        daemon=True,
    )
    thread.start()

    return jsonify({"run_id": run_id, "status": "started"})


@bp.route("/api/word", methods=["POST"])
def analyze_word():
    data = request.get_json(force=True, silent=True) or {}
    word = data.get("word", "")
    context = data.get("context", "")
    if not word or not context:
        return jsonify({"error": "Both word and context are required."}), 400

    try:
        result = asyncio.run(_orchestrator(_load_config()).analyze_word(word, context))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result.model_dump(mode="json"))


@bp.route("/api/compare", methods=["POST"])
def compare():
    data = request.get_json(force=True, silent=True) or {}
    first = data.get("first", "")
    second = data.get("second", "")
    if not first or not second:
        return jsonify({"error": "Two texts are required."}), 400

    try:
        result = asyncio.run(_orchestrator(_load_config()).compare_texts(first, second))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result.model_dump(mode="json"))


@bp.route("/api/status/<run_id>", methods=["GET"])
def run_status(run_id: str):
    with _active_runs_lock:
        info = _active_runs.get(run_id)

    if not info:
        run_file = RUNS_DIR / f"{run_id}.json"
        if run_file.exists():
            return jsonify({"status": "completed", "run_id": run_id})
        return jsonify({"error": "Run not found."}), 404

    return jsonify({
        "run_id": run_id,
        "status": info["status"],
        "stage": info.get("stage", ""),
        "progress": info.get("progress", 0),
        "error": info.get("error"),
    })


@bp.route("/api/result/<run_id>", methods=["GET"])
def run_result(run_id: str):
    with _active_runs_lock:
        info = _active_runs.get(run_id, {})

    if info.get("status") == "completed":
        return jsonify({
            "run_id": run_id,
            "markdown": info.get("markdown", ""),
            "json_report": info.get("json_report"),
        })

    run_file = RUNS_DIR / f"{run_id}.json"
    if run_file.exists():
        report = AnalysisReport(**json.loads(run_file.read_text(encoding="utf-8")))
        return jsonify({
            "run_id": run_id,
            "markdown": build_markdown_report(report),
            "json_report": build_export(report),
        })

    return jsonify({"error": "Result not ready."}), 404


@bp.route("/api/cancel/<run_id>", methods=["POST"])
def cancel_run(run_id: str):
    with _active_runs_lock:
        info = _active_runs.get(run_id)
        if info and info["status"] == "running":
            info["cancel"] = True
            return jsonify({"status": "cancelling"})
    return jsonify({"error": "Run not found or not running."}), 404


@bp.route("/api/runs", methods=["GET"])
def get_runs():
    return jsonify(list_runs())


@bp.route("/api/logs", methods=["GET"])
def get_logs():
    return jsonify(list_logs())


@bp.route("/api/logs/<run_id>", methods=["GET"])
def get_log(run_id: str):
    content = read_log(run_id)
    if content:
        return jsonify({"run_id": run_id, "content": content})
    return jsonify({"error": "Log not found."}), 404


def _run_pipeline_in_thread(
    run_id: str,
    orchestrator: Orchestrator,
    text: str,
    aspects: Optional[list[str]],
) -> None:
    """Run the pipeline in a background thread with its own event loop."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def progress_cb(stage: str, pct: float):
        with _active_runs_lock:
            info = _active_runs.get(run_id)
            if info:
                info["stage"] = stage
                info["progress"] = pct

    def cancel_check() -> bool:
        with _active_runs_lock:
            info = _active_runs.get(run_id)
            return info.get("cancel", False) if info else False

    orchestrator.progress_cb = progress_cb
    orchestrator.cancel_check = cancel_check

    try:
        report = loop.run_until_complete(orchestrator.analyze(text, aspects))
        with _active_runs_lock:
            _active_runs[run_id] = {
                "status": "completed",
                "stage": "done",
                "progress": 1.0,
                "markdown": build_markdown_report(report),
                "json_report": build_export(report),
            }

    except AnalysisCancelled as e:
        with _active_runs_lock:
            _active_runs[run_id] = {
                "status": "cancelled",
                "stage": e.stage,
                "progress": 0,
                "error": str(e),
            }
    except Exception as e:
        logger.exception("Run %s failed", run_id)
        with _active_runs_lock:
            _active_runs[run_id] = {
                "status": "error",
                "stage": "error",
                "progress": 0,
                "error": str(e),
            }
    finally:
        loop.close()


def _apply_web_config(config: PipelineConfig, overrides: dict) -> None:
    """Apply config overrides from web form (safe subset only)."""
    safe_keys = {
        "enable_inference", "enable_cache", "verbosity",
        "max_input_chars",
    }
    for k, v in overrides.items():
        if k in safe_keys:
            setattr(config, k, v)

    for section in ("thresholds", "processing"):
        values = overrides.get(section, {})
        target = getattr(config, section)
        for k, v in values.items():
            if hasattr(target, k) and isinstance(v, (int, float)):
                setattr(target, k, v)

    if "provider" in overrides:
        config.provider = overrides["provider"]


def create_app(
    config: Optional[PipelineConfig] = None,
    collaborators: Optional[Collaborators] = None,
) -> Flask:
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)
    app.config["POETIK_CONFIG"] = config
    app.config["POETIK_COLLABORATORS"] = collaborators

    if URL_PREFIX:
        app.register_blueprint(bp, url_prefix=URL_PREFIX)
    else:
        app.register_blueprint(bp)

    return app


def main():
    parser = argparse.ArgumentParser(description="poetik web API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8020)
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    app = create_app()
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
