#!/usr/bin/env python3
"""CLI entry point for poetik."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from poetik.analyzers.report_builder import build_full_json_report
from poetik.config import PipelineConfig
from poetik.models import Aspect
from poetik.orchestrator import Orchestrator


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="poetik",
        description="Linguistic and stylistic analysis of German prose and poetry.",
    )
    parser.add_argument(
        "-s", "--source",
        default="source.txt",
        help="Path to source text file (default: source.txt)",
    )
    parser.add_argument(
        "-o", "--output",
        default="result.md",
        help="Path for Markdown output (default: result.md)",
    )
    parser.add_argument(
        "-j", "--json-output",
        default="result.json",
        help="Path for JSON output (default: result.json)",
    )
    parser.add_argument(
        "-c", "--config",
        default="config.json",
        help="Path to config file (default: config.json)",
    )
    parser.add_argument(
        "-a", "--aspect",
        action="append",
        choices=[a.value for a in Aspect],
        help="Aspect to analyze; repeat for several (default: all)",
    )
    parser.add_argument(
        "-w", "--word",
        default="",
        help="Analyze a single word in the context of the source text",
    )
    parser.add_argument(
        "--compare",
        default="",
        help="Path to a second text to compare the source with",
    )
    parser.add_argument(
        "--full-json",
        action="store_true",
        help="Write the complete report model instead of the flat export",
    )
    parser.add_argument(
        "--no-inference",
        action="store_true",
        help="Rule-based analysis only; no model calls",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=None,
        help="Increase verbosity (-v for INFO, -vv for DEBUG)",
    )
    return parser.parse_args(argv)


def _read_text(path: Path) -> str | None:
    if not path.exists():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return None
    return path.read_text(encoding="utf-8")


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    text = _read_text(Path(args.source))
    if text is None:
        return 1

    overrides = {}
    if args.verbose is not None:
        overrides["verbosity"] = args.verbose + 1
    if args.no_inference:
        overrides["enable_inference"] = False

    config = PipelineConfig.load(config_path=args.config, overrides=overrides)
    if not config.inference_configured:
        print(
            "Note: no inference provider configured; "
            "sentiment and semantics are skipped.",
            file=sys.stderr,
        )

    orchestrator = Orchestrator(config=config)

    try:
        if args.word:
            result = await orchestrator.analyze_word(args.word, text)
            print(result.model_dump_json(indent=2))
            return 0

        if args.compare:
            other = _read_text(Path(args.compare))
            if other is None:
                return 1
            comparison = await orchestrator.compare_texts(text, other)
            print(comparison.model_dump_json(indent=2))
            return 0

        report = await orchestrator.analyze(text, args.aspect)
    except ValueError as e:
        print(f"Input error: {e}", file=sys.stderr)
        return 1
    except RuntimeError as e:
        print(f"Runtime error: {e}", file=sys.stderr)
        return 1

    md_report, json_report = orchestrator.render(report)
    if args.full_json:
        json_report = build_full_json_report(report)

    output_path = Path(args.output)
    output_path.write_text(md_report, encoding="utf-8")
    print(f"Markdown report written to: {output_path}")

    json_path = Path(args.json_output)
    json_path.write_text(json_report, encoding="utf-8")
    print(f"JSON report written to: {json_path}")

    bs = report.summary.basic_stats
    print(f"\nWords: {bs.word_count}, sentences: {bs.sentence_count}, verses: {bs.verse_count}")
    if report.readability:
        print(f"Reading ease: {report.readability.flesch_reading_ease:.1f} "
              f"({report.readability.interpretation})")
    if report.summary.sentiment:
        print(f"Sentiment: {report.summary.sentiment.overall.value}")

    print(f"Run ID: {orchestrator.run_id}")
    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
