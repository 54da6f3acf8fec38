#!/usr/bin/env python3
"""
Build walk-forward defect datasets for a project.

Usage:
    python build_datasets.py --project AVRO --repo https://github.com/apache/avro
    python build_datasets.py --project AVRO --repo ~/src/avro --fraction 0.5
"""

import argparse
import logging
import sys

from defect_chronicle import ColdStartError, build_datasets
from defect_chronicle.config import OUTPUT_DIR, REFERENCE_PROJECTS, WALK_FORWARD_FRACTION
from defect_chronicle.logging_config import configure_logging
from defect_chronicle.pipeline import reference_panel


def main():
    parser = argparse.ArgumentParser(description='Defect Chronicle - walk-forward defect datasets')
    parser.add_argument('--project', required=True,
                        help='Jira project key, e.g. AVRO')
    parser.add_argument('--repo', required=True,
                        help='Local checkout or clone URL of the project repository')
    parser.add_argument('--output', default=str(OUTPUT_DIR),
                        help='Output directory for CSV files')
    parser.add_argument('--reference-projects', nargs='+', default=REFERENCE_PROJECTS,
                        help='Projects pooled for the cold-start proportion')
    parser.add_argument('--fraction', type=float, default=WALK_FORWARD_FRACTION,
                        help='Share of the release timeline to walk forward over')
    parser.add_argument('--log-dir', default=None,
                        help='Also write logs to <log-dir>/run.log')
    parser.add_argument('--verbose', action='store_true',
                        help='Debug logging')
    args = parser.parse_args()

    configure_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_dir)

    print("="*60)
    print("DEFECT CHRONICLE")
    print("="*60)
    print(f"Project: {args.project}")
    print(f"Repository: {args.repo}")
    try:
        print(f"Cold-start panel: {', '.join(reference_panel(args.project, args.reference_projects))}")
        result = build_datasets(
            args.project,
            args.repo,
            output_dir=args.output,
            reference_projects=args.reference_projects,
            fraction=args.fraction,
        )
    except ColdStartError as e:
        print(f"\nERROR: {e}")
        print("  Check the reference projects: at least one needs tickets with affected versions.")
        sys.exit(2)

    report = result['report']
    print("\n" + "="*60)
    print("SUMMARY")
    print("="*60)
    print(f"  Cold-start P:     {result['p_cold_start']:.3f}")
    print(f"  Releases:         {len(result['releases'])}")
    print(f"  Tickets:          {len(result['tickets'])}")
    print(f"  Iterations:       {len(report.completed)} written, {len(report.skipped)} skipped")
    if report.stopped_early:
        print("  Stopped early: no testing release left")

    print("\n" + "="*60)
    print("DONE")
    print("="*60)


if __name__ == "__main__":
    main()
