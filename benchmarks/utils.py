"""
Utilities for benchmark preparation and execution.

This module provides shared functionality for generating test containers,
managing benchmark directories, and creating complex metadata.
"""

import json
import random
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional

import numpy as np

from pgf_metadata_tools.metadata_buffer import MetadataBuffer
from pgf_metadata_tools.pgf_header import build_header, PGF_SIGNATURE

# Constants
BENCHMARK_DIR = Path(__file__).parent
DATA_DIR = BENCHMARK_DIR / "data"
RESULTS_DIR = BENCHMARK_DIR / "results"

MEGABYTE = 1024 * 1024


class BenchmarkUtils:
    """Utilities for benchmark preparation and execution."""

    @staticmethod
    def ensure_dirs():
        """Ensure all necessary directories exist."""
        for directory in [DATA_DIR, RESULTS_DIR]:
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise RuntimeError(f"Directory creation failed for {directory}: {e}") from e

    @staticmethod
    def create_test_container(path: Path, payload_size: int,
                              metadata: Optional[Dict[str, Any]] = None) -> Path:
        """
        Create a PGF container with a synthetic payload and optional metadata.

        Args:
            path: Path to save the container
            payload_size: Size of the payload in bytes
            metadata: Optional text metadata to embed

        Returns:
            Path to the created container
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        buffer = MetadataBuffer()
        for key, value in (metadata or {}).items():
            buffer.set_text(key, json.dumps(value) if isinstance(value, (dict, list)) else str(value))
        region = buffer.to_bytes()

        header = build_header(width=4096, height=4096)
        rng = np.random.default_rng(payload_size)

        with open(path, 'wb') as f:
            f.write(PGF_SIGNATURE + bytes([header.magic_version]))
            f.write(header.byte_order.pack_u32(header.structure_size + len(region)))
            f.write(header.raw_structure)
            f.write(region)
            # Write the payload in slices to keep generation memory flat
            remaining = payload_size
            while remaining > 0:
                size = min(remaining, 4 * MEGABYTE)
                f.write(rng.integers(0, 256, size, dtype=np.uint8).tobytes())
                remaining -= size

        return path

    @staticmethod
    def create_complex_metadata(size: str = "small") -> Dict[str, Any]:
        """
        Create complex metadata of different sizes for testing.

        Args:
            size: Size of metadata to create ("small", "medium", or "large")

        Returns:
            Dictionary containing metadata
        """
        if size == "small":
            return {
                "title": "Test Image",
                "author": "Benchmark Suite",
                "rating": "1500.0",
                "tags": "test,benchmark,memory",
                "created": datetime.now().isoformat()
            }
        elif size == "medium":
            base_metadata = BenchmarkUtils.create_complex_metadata("small")
            base_metadata["processing"] = {
                "levels": 6,
                "quality": random.randint(0, 4),
                "roi": [0, 0, 1024, 1024],
                "timestamp": datetime.now().isoformat(),
            }
            return base_metadata
        elif size == "large":
            base_metadata = BenchmarkUtils.create_complex_metadata("medium")
            for i in range(50):
                base_metadata[f"extra_field_{i}"] = f"value_{i}" * 10
            base_metadata["history"] = [
                {"step": i, "score": random.random()} for i in range(100)
            ]
            return base_metadata

        return {}

    @staticmethod
    def generate_test_containers(sizes: List[int],
                                 metadata_size: str = "medium") -> Dict[int, Path]:
        """
        Generate test containers of different payload sizes.

        Args:
            sizes: Payload sizes in megabytes
            metadata_size: Size of metadata to add ("small", "medium", or "large")

        Returns:
            Dictionary mapping payload sizes to container paths
        """
        BenchmarkUtils.ensure_dirs()
        containers = {}

        metadata = BenchmarkUtils.create_complex_metadata(metadata_size)

        print("Generating test containers...")
        for size_mb in sizes:
            path = DATA_DIR / f"test_{size_mb}mb.pgf"

            # Skip if already exists
            if not path.exists():
                BenchmarkUtils.create_test_container(path, size_mb * MEGABYTE, metadata)
            containers[size_mb] = path

        return containers
