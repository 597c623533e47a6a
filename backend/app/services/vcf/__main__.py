from __future__ import annotations

import json
import sys
from pathlib import Path

from app.services.pipeline.analysis_pipeline import SUPPORTED_DRUGS, run_full_analysis

USAGE = "Usage: python -m app.services.vcf <path-to.vcf> [--drugs DRUG1,DRUG2]"


def main(argv: list[str]) -> int:
    if len(argv) < 2 or "--help" in argv:
        print(USAGE)
        return 0

    path = Path(argv[1])
    if not path.exists():
        print(f"File not found: {path}", file=sys.stderr)
        return 2

    drugs = list(SUPPORTED_DRUGS)
    if "--drugs" in argv:
        try:
            idx = argv.index("--drugs")
            drugs = [d for d in argv[idx + 1].split(",") if d.strip()]
        except IndexError:
            print("Error: --drugs requires a comma-separated list", file=sys.stderr)
            return 2

    content = path.read_text(encoding="utf-8", errors="replace")
    outcome = run_full_analysis(content, drugs)
    warnings = [w.to_dict() for w in outcome.warnings]

    if outcome.error:
        print(json.dumps({"error": outcome.error, "vcf_warnings": warnings}, indent=2))
        return 2

    payload = {
        "results": [r.model_dump() for r in outcome.results],
        "vcf_warnings": warnings,
    }
    print(json.dumps(payload, indent=2))
    return 0


def run() -> None:
    raise SystemExit(main(sys.argv))


if __name__ == "__main__":
    run()
