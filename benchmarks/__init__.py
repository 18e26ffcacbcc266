"""
PGF Metadata Tools Benchmarking Suite

Measures the memory footprint of metadata rewrites on PGF containers of
growing payload size.

Usage:
    python -m benchmarks.run --help
"""

__version__ = "0.1.0"

from benchmarks.utils import BenchmarkUtils
from benchmarks.memory import MemoryBenchmark

# Payload sizes are given in megabytes
PRESETS = {
    "small": {"sizes": [1, 4, 16], "iterations": 5},
    "medium": {"sizes": [4, 16, 64], "iterations": 3},
    "large": {"sizes": [16, 64, 256], "iterations": 2}
}
