"""
Command-line entry point for the PGF rewrite memory benchmark.
"""

import argparse
import sys

from benchmarks import PRESETS, BenchmarkUtils, MemoryBenchmark


def _megabytes(value: str):
    return [int(size) for size in value.split(',') if size.strip()]


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Measure memory use of PGF metadata rewrites")
    parser.add_argument("--preset", choices=list(PRESETS),
                        help="Named configuration; overrides --sizes and --iterations")
    parser.add_argument("--sizes", type=_megabytes, default=[1, 4, 16],
                        help="Comma-separated payload sizes in megabytes")
    parser.add_argument("--iterations", type=int, default=5)
    parser.add_argument("--output", choices=["json", "csv", "markdown", "all"], default="csv")
    args = parser.parse_args(argv)

    config = PRESETS[args.preset] if args.preset else {"sizes": args.sizes,
                                                       "iterations": args.iterations}
    BenchmarkUtils.ensure_dirs()
    benchmark = MemoryBenchmark(config["sizes"], config["iterations"])
    try:
        benchmark.run()
    except KeyboardInterrupt:
        print("\nBenchmark interrupted.")
        return 130

    for format_type, path in benchmark.save_results(args.output).items():
        print(f"Results saved as {format_type}: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
