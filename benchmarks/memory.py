"""
Memory usage benchmarks for PGF metadata rewrites.

This module compares file-backed and memory-backed containers across
payload sizes, measuring peak Python allocations, process RSS growth and
elapsed time for a single metadata rewrite.
"""

import csv
import gc
import json
import statistics
import time
import tracemalloc
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List

import psutil

from pgf_metadata_tools.container_io import FileContainer, MemoryContainer
from pgf_metadata_tools.pgf_image import PGFImage

from benchmarks.utils import BenchmarkUtils, RESULTS_DIR


class MemoryBenchmark:
    """
    Benchmark for measuring memory usage of a metadata rewrite.

    The file-backed handle streams the payload in bounded chunks, so its peak
    should stay flat as payloads grow; the memory-backed handle holds the
    whole container and serves as the baseline.
    """

    def __init__(self, sizes: List[int], iterations: int = 5):
        """
        Initialize the memory benchmark.

        Args:
            sizes: Payload sizes in megabytes
            iterations: Number of iterations for each test
        """
        self.sizes = sizes
        self.iterations = iterations
        self.results = {}
        self._process = psutil.Process()

    def run(self):
        """
        Run the memory benchmark and return the results.

        Returns:
            Dictionary containing benchmark results
        """
        containers = BenchmarkUtils.generate_test_containers(self.sizes)

        handlers = {
            "File": self._run_file_rewrite,
            "Memory": self._run_memory_rewrite,
        }

        results = {}

        print("\nRunning memory benchmark...")
        for size_mb, path in containers.items():
            size_results = {
                "payload_mb": size_mb,
                "file_size_mb": path.stat().st_size / (1024 * 1024),
                "handlers": {}
            }

            for name, handler_func in handlers.items():
                stats = [self._profile(handler_func, path) for _ in range(self.iterations)]
                size_results["handlers"][name] = self._summarize(stats)

            file_peak = size_results["handlers"]["File"]["peak_mb"]
            memory_peak = size_results["handlers"]["Memory"]["peak_mb"]
            size_results["memory_ratio"] = memory_peak / file_peak if file_peak else 0.0

            results[f"{size_mb}MB"] = size_results

        self.results = results
        return results

    @staticmethod
    def _summarize(stats: List[Dict[str, float]]) -> Dict[str, float]:
        summary = {}
        for key in ("peak_mb", "rss_delta_mb", "seconds"):
            values = [s[key] for s in stats]
            summary[key] = statistics.mean(values)
            summary[f"{key}_stdev"] = statistics.stdev(values) if len(values) > 1 else 0.0
        return summary

    def _profile(self, func: Callable[[Path], None], path: Path) -> Dict[str, float]:
        """
        Profile one call using tracemalloc and the process resident set size.
        """
        gc.collect()
        rss_before = self._process.memory_info().rss
        tracemalloc.start()
        start = time.perf_counter()

        try:
            func(path)
            elapsed = time.perf_counter() - start
            _, peak = tracemalloc.get_traced_memory()
        finally:
            # Stop tracking even if an exception occurs
            tracemalloc.stop()

        rss_after = self._process.memory_info().rss
        return {
            "peak_mb": peak / 1024 / 1024,
            "rss_delta_mb": max(rss_after - rss_before, 0) / 1024 / 1024,
            "seconds": elapsed,
        }

    def _run_file_rewrite(self, path: Path) -> None:
        image = PGFImage(FileContainer(path))
        image.read_metadata()
        image.metadata.set_text('benchmark', str(time.time()))
        image.write_metadata()

    def _run_memory_rewrite(self, path: Path) -> None:
        image = PGFImage(MemoryContainer(path.read_bytes()))
        image.read_metadata()
        image.metadata.set_text('benchmark', str(time.time()))
        image.write_metadata()

    def save_results(self, format_type: str = "all") -> Dict[str, Path]:
        """
        Save benchmark results in various formats.

        Args:
            format_type: Output format, one of "json", "csv", "markdown", or "all"

        Returns:
            Dictionary mapping format types to output file paths
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        saved_files = {}

        if format_type in ("json", "all"):
            json_path = RESULTS_DIR / f"memory_benchmark_{timestamp}.json"
            with open(json_path, 'w') as f:
                json.dump(self.results, f, indent=2)
            saved_files["json"] = json_path

        if format_type in ("csv", "all"):
            csv_path = RESULTS_DIR / f"memory_benchmark_{timestamp}.csv"
            with open(csv_path, 'w', newline='') as f:
                writer = csv.writer(f)
                writer.writerow([
                    'Payload', 'File Size (MB)',
                    'File Peak (MB)', 'File RSS (MB)', 'File Time (s)',
                    'Memory Peak (MB)', 'Memory RSS (MB)', 'Memory Time (s)',
                    'Memory Ratio'
                ])
                for size_name, data in self.results.items():
                    file_data = data["handlers"]["File"]
                    memory_data = data["handlers"]["Memory"]
                    writer.writerow([
                        size_name, data["file_size_mb"],
                        file_data["peak_mb"], file_data["rss_delta_mb"], file_data["seconds"],
                        memory_data["peak_mb"], memory_data["rss_delta_mb"], memory_data["seconds"],
                        data["memory_ratio"]
                    ])
            saved_files["csv"] = csv_path

        if format_type in ("markdown", "all"):
            md_path = RESULTS_DIR / f"memory_benchmark_{timestamp}.md"
            with open(md_path, 'w') as f:
                f.write("# PGF Metadata Rewrite Memory Benchmark\n\n")
                f.write(f"Date: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n\n")
                f.write("| Payload | File Peak (MB) | Memory Peak (MB) | File Time (s) | Memory Time (s) | Ratio |\n")
                f.write("|---------|----------------|------------------|---------------|-----------------|-------|\n")
                for size_name, data in self.results.items():
                    file_data = data["handlers"]["File"]
                    memory_data = data["handlers"]["Memory"]
                    f.write(f"| {size_name} | "
                            f"{file_data['peak_mb']:.2f} ± {file_data['peak_mb_stdev']:.2f} | "
                            f"{memory_data['peak_mb']:.2f} ± {memory_data['peak_mb_stdev']:.2f} | "
                            f"{file_data['seconds']:.3f} | {memory_data['seconds']:.3f} | "
                            f"{data['memory_ratio']:.2f}x |\n")
            saved_files["markdown"] = md_path

        # Print summary to console
        print("\nMemory Usage Benchmark Summary:")
        print("-" * 70)
        print(f"{'Payload':<10} {'File (MB)':<12} {'Memory (MB)':<14} {'File RSS':<10} {'Ratio':<8}")
        print("-" * 70)
        for size_name, data in self.results.items():
            file_data = data["handlers"]["File"]
            memory_data = data["handlers"]["Memory"]
            print(f"{size_name:<10} "
                  f"{file_data['peak_mb']:>9.2f}   "
                  f"{memory_data['peak_mb']:>11.2f}   "
                  f"{file_data['rss_delta_mb']:>7.2f}   "
                  f"{data['memory_ratio']:>6.2f}x")

        return saved_files
