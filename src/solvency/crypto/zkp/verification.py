"""
ZKP verification components.

This module provides structural proof checks, a verification cache and
batch verification.
"""

import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .core import Proof, ProofKind, VerificationResult, ZKPConfig, ZKPStatus


@dataclass
class CacheEntry:
    """Entry in the verification cache."""

    result: VerificationResult
    timestamp: float
    access_count: int = 0

    def is_expired(self, ttl: float) -> bool:
        return time.time() - self.timestamp > ttl


class VerificationCache:
    """LRU cache of verification results with a time-to-live."""

    def __init__(self, max_size: int = 1000, ttl: float = 3600.0):
        self.max_size = max_size
        self.ttl = ttl
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[VerificationResult]:
        with self._lock:
            if key in self._cache:
                entry = self._cache[key]
                if not entry.is_expired(self.ttl):
                    self._cache.move_to_end(key)
                    entry.access_count += 1
                    self._hits += 1
                    return entry.result
                del self._cache[key]

            self._misses += 1
            return None

    def set(self, key: str, result: VerificationResult) -> None:
        with self._lock:
            if key in self._cache:
                del self._cache[key]
            while len(self._cache) >= self.max_size:
                self._cache.popitem(last=False)

            self._cache[key] = CacheEntry(result, time.time())

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = self._hits / total_requests if total_requests > 0 else 0.0

            return {
                "size": len(self._cache),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": hit_rate,
                "ttl": self.ttl,
            }


class BatchVerifier:
    """Verify many proofs on a thread pool, preserving input order."""

    def __init__(self, max_batch_size: int = 100, max_workers: int = 4):
        self.max_batch_size = max_batch_size
        self.max_workers = max_workers

    def verify_batch(
        self,
        verify_func: Callable[[Proof, Any], VerificationResult],
        items: Sequence[Tuple[Proof, Any]],
    ) -> List[VerificationResult]:
        if len(items) == 0:
            return []

        results: List[VerificationResult] = []
        for i in range(0, len(items), self.max_batch_size):
            batch = items[i : i + self.max_batch_size]
            results.extend(self._verify_batch_parallel(verify_func, batch))
        return results

    def _verify_batch_parallel(
        self,
        verify_func: Callable[[Proof, Any], VerificationResult],
        items: Sequence[Tuple[Proof, Any]],
    ) -> List[VerificationResult]:
        results: List[Optional[VerificationResult]] = [None] * len(items)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_index = {
                executor.submit(verify_func, proof, public_inputs): i
                for i, (proof, public_inputs) in enumerate(items)
            }

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    results[index] = future.result()
                except Exception as e:
                    results[index] = VerificationResult(
                        status=ZKPStatus.VERIFICATION_FAILED,
                        error_message=f"Batch verification failed: {e}",
                    )

        return results


class ProofVerifier:
    """Structural checks run on a proof before its relation is evaluated."""

    def __init__(self, config: ZKPConfig):
        self.max_proof_size = config.max_proof_size
        self.max_public_input_size = config.max_public_input_size

    def validate_proof_format(
        self, proof: Proof, expected_kind: Optional[ProofKind] = None
    ) -> Tuple[bool, Optional[str]]:
        if not isinstance(proof.proof_data, (bytes, bytearray)):
            return False, "Proof data must be bytes"

        if len(proof.proof_data) == 0:
            return False, "Proof data is empty"

        if len(proof.proof_data) > self.max_proof_size:
            return False, f"Proof data too large: {len(proof.proof_data)} bytes"

        if not proof.circuit_id or len(proof.circuit_id) > 256:
            return False, "Invalid circuit ID"

        if expected_kind is not None and proof.kind != expected_kind:
            return False, f"Expected a {expected_kind.value} proof, got {proof.kind.value}"

        if len(repr(proof.public_inputs)) > self.max_public_input_size:
            return False, "Public inputs too large"

        return True, None

    def get_verification_stats(self) -> Dict[str, Any]:
        return {
            "max_proof_size": self.max_proof_size,
            "max_public_input_size": self.max_public_input_size,
        }
