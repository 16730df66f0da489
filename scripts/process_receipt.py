#!/usr/bin/env python3
"""
Receipt Processing Script

Runs the receipt pipeline on one file or URL and prints the result as JSON.

Usage:
    python scripts/process_receipt.py receipt.jpg
    python scripts/process_receipt.py receipt.pdf --threshold 70
    python scripts/process_receipt.py https://example.com/r.png --no-ai
    python scripts/process_receipt.py receipt.jpg --json-logs --verbose
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from receipt_ingestion.core.config import PipelineConfig
from receipt_ingestion.core.orchestrator import ReceiptPipeline
from receipt_ingestion.utils.exceptions import ReceiptIngestionError
from receipt_ingestion.utils.logging import setup_logging


async def run(source: str, config: dict) -> dict:
    pipeline = ReceiptPipeline(config)
    try:
        if source.startswith(("http://", "https://")):
            result = await pipeline.process_url(source)
        else:
            result = await pipeline.process_file(Path(source))
        return result.to_dict()
    finally:
        await pipeline.close()


def main():
    parser = argparse.ArgumentParser(description="Extract structured data from a receipt image or PDF")
    parser.add_argument("source", help="Path or http(s) URL of the receipt")
    parser.add_argument("--threshold", type=float, help="Escalate to AI below this OCR confidence (0-100)")
    parser.add_argument("--no-ai", action="store_true", help="OCR only, never call the AI backend")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()

    cfg = PipelineConfig.from_env()
    if args.threshold is not None:
        if not 0 <= args.threshold <= 100:
            parser.error("--threshold must be between 0 and 100")
        cfg.accuracy_threshold = args.threshold
    if args.no_ai:
        cfg.enable_ai = False

    setup_logging(
        level="DEBUG" if args.verbose else cfg.log_level,
        log_file=Path(cfg.log_file) if cfg.log_file else None,
        format_json=args.json_logs or cfg.log_json,
    )

    if not args.source.startswith(("http://", "https://")) and not Path(args.source).exists():
        print(f"File not found: {args.source}", file=sys.stderr)
        sys.exit(1)

    try:
        output = asyncio.run(run(args.source, cfg.to_dict()))
    except ReceiptIngestionError as e:
        print(json.dumps({"success": False, **e.to_dict()}, indent=2))
        sys.exit(1)

    print(json.dumps({"success": True, **output}, indent=2))
    sys.exit(0)


if __name__ == "__main__":
    main()
