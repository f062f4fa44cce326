"""Logging utilities with per-run file logging and secret redaction."""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from poetik.config import redact

WORKSPACE = Path(__file__).resolve().parent.parent / "workspace"
LOGS_DIR = WORKSPACE / "logs"
RUNS_DIR = WORKSPACE / "runs"


def _ensure_dirs() -> None:
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    RUNS_DIR.mkdir(parents=True, exist_ok=True)


class RedactingFormatter(logging.Formatter):
    """Formatter that masks anything that looks like an API key."""

    _patterns = [
        re.compile(r'(sk-[A-Za-z0-9_-]{20,})'),
        re.compile(r'(Bearer\s+[A-Za-z0-9_.-]{20,})'),
    ]

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        for pat in self._patterns:
            msg = pat.sub(lambda m: redact(m.group(1)), msg)
        return msg


def setup_logger(
    name: str = "poetik",
    verbosity: int = 1,
    run_id: Optional[str] = None,
) -> logging.Logger:
    """Create or retrieve a configured logger.

    Handlers are attached once per logger name; a later call with a new
    *run_id* adds that run's file handler.
    """
    logger = logging.getLogger(name)
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    logger.setLevel(level)

    fmt = RedactingFormatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
               for h in logger.handlers):
        sh = logging.StreamHandler(sys.stderr)
        sh.setFormatter(fmt)
        logger.addHandler(sh)

    if run_id:
        _ensure_dirs()
        log_path = LOGS_DIR / f"{run_id}.log"
        known = {getattr(h, "baseFilename", None) for h in logger.handlers}
        if str(log_path) not in known:
            fh = logging.FileHandler(log_path, encoding="utf-8")
            fh.setFormatter(fmt)
            logger.addHandler(fh)

    return logger


def generate_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")


def save_run(run_id: str, data: dict) -> Path:
    """Persist an analysis report to workspace/runs/."""
    _ensure_dirs()
    p = RUNS_DIR / f"{run_id}.json"
    p.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return p


def list_runs() -> list[dict]:
    """List all stored reports, newest first."""
    _ensure_dirs()
    runs = []
    for f in sorted(RUNS_DIR.glob("*.json"), reverse=True):
        try:
            data = json.loads(f.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            continue
        meta = data.get("metadata", {})
        runs.append({
            "run_id": f.stem,
            "file": str(f),
            "analyzed_at": meta.get("analyzed_at", ""),
            "language": meta.get("language", ""),
            "text_length": meta.get("text_length", 0),
        })
    return runs


def list_logs() -> list[dict]:
    """List all log files, newest first."""
    _ensure_dirs()
    logs = []
    for f in sorted(LOGS_DIR.glob("*.log"), reverse=True):
        logs.append({
            "run_id": f.stem,
            "file": str(f),
            "size": f.stat().st_size,
        })
    return logs


def read_log(run_id: str) -> str:
    """Read a log file by run ID."""
    p = LOGS_DIR / f"{run_id}.log"
    if p.exists():
        return p.read_text(encoding="utf-8")
    return ""
