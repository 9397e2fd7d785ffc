"""Command line entry point: ``python -m payxl [BATCH.json]``.

Reads a JSON object of pay-element name -> definition text, validates and/or
evaluates it, and prints the results as JSON on stdout.  Without a file the
sample pay-element batch is used.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from payxl._errors import FormulaEvaluationError
from payxl.batch import BatchOptions, process_formulae, validate_formulae

logger = logging.getLogger("payxl")

SAMPLE_BATCH = {
    "DA": "ROUND(CTC * 12%, 0)",
    "CTC": "50000",
    "HRA": "ROUND(BASIC * 30%, 0)",
    "PB": "ROUND((BASIC + DA) * 12%, 0)",
    "BASIC": "ROUND(CTC * 40%, 0)",
}


def load_batch(path: str) -> dict[str, str]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object of name -> definition")
    return {str(name): str(text) for name, text in data.items()}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="payxl",
        description="Validate or evaluate a batch of named pay-element formulas.",
    )
    parser.add_argument(
        "batch_file",
        nargs="?",
        default=None,
        help="JSON file mapping names to constants or formulas (default: sample batch)",
    )
    parser.add_argument(
        "-s",
        "--sheet",
        default=None,
        help="Worksheet to bind definitions on (default: per-mode sheet name)",
    )
    parser.add_argument(
        "-m",
        "--mode",
        choices=("validate", "evaluate", "both"),
        default="both",
        help="What to run (default: both)",
    )
    parser.add_argument(
        "--no-persist",
        action="store_true",
        help="Do not write the transient .xlsx file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )

    if args.batch_file is None:
        batch = dict(SAMPLE_BATCH)
    else:
        if not os.path.isfile(args.batch_file):
            logger.error("File not found: %s", args.batch_file)
            return 1
        try:
            batch = load_batch(args.batch_file)
        except (OSError, ValueError) as exc:
            logger.error("Could not read batch: %s", exc)
            return 1

    options = BatchOptions(persist=not args.no_persist)
    output: dict[str, object] = {"input": batch}
    try:
        if args.mode in ("validate", "both"):
            output["validation"] = validate_formulae(
                batch, args.sheet or "FormulaValidationSheet", options
            )
        if args.mode in ("evaluate", "both"):
            output["output"] = process_formulae(
                batch, args.sheet or "FormulaEvaluationSheet", options
            )
    except FormulaEvaluationError as exc:
        logger.error("%s", exc)
        return 1

    json.dump(output, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
