"""Performance counters and their report."""

from __future__ import annotations

import dataclasses
import sys
import threading
from typing import TextIO

__all__ = ["Diagnostics", "diagnostics"]

_RULE = "═" * 63
_BACKEND_NAME_MAX = 31
_SMALL_UPDATE = 128
_LARGE_UPDATE = 8192
_BATCH = 8
_ALIGNMENT = 32


@dataclasses.dataclass
class Diagnostics:
    """Counters recorded by the engine while it runs."""

    gcm_init_calls: int = 0
    gcm_aad_calls: int = 0
    gcm_encrypt_calls: int = 0
    gcm_decrypt_calls: int = 0
    gcm_final_calls: int = 0

    batch_8block_hits: int = 0
    batch_partial_hits: int = 0
    batch_large_hits: int = 0
    total_blocks_processed: int = 0

    ghash_clmul8_calls: int = 0
    ghash_scalar_calls: int = 0
    ghash_total_bytes: int = 0

    aes_vaes_calls: int = 0
    aes_scalar_calls: int = 0
    aes_total_blocks: int = 0

    tail_partial_blocks: int = 0
    tail_sub_block_bytes: int = 0

    provider_update_calls: int = 0
    provider_small_updates: int = 0
    provider_medium_updates: int = 0
    provider_large_updates: int = 0

    unaligned_loads: int = 0
    aligned_loads: int = 0

    selected_backend: str = ""

    _lock: threading.Lock = dataclasses.field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    @classmethod
    def _counter_names(cls) -> tuple[str, ...]:
        return tuple(
            f.name
            for f in dataclasses.fields(cls)
            if f.init and f.name != "selected_backend"
        )

    def increment(self, counter: str, amount: int = 1) -> None:
        """Add ``amount`` to the named counter."""
        if counter not in self._counter_names():
            raise ValueError(f"unknown counter: {counter!r}")
        if amount < 0:
            raise ValueError("counters only grow")
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def set_backend(self, name: str) -> None:
        """Record the name of the selected backend (at most 31 characters)."""
        with self._lock:
            self.selected_backend = name[:_BACKEND_NAME_MAX]

    def record_batch(self, blocks: int) -> None:
        """Classify a batch of blocks by its size."""
        if blocks == _BATCH:
            self.increment("batch_8block_hits")
        elif blocks > _BATCH:
            self.increment("batch_large_hits")
        else:
            self.increment("batch_partial_hits")
        self.increment("total_blocks_processed", blocks)

    def record_provider_update(self, nbytes: int) -> None:
        """Classify a provider update by its length in bytes."""
        self.increment("provider_update_calls")
        if nbytes < _SMALL_UPDATE:
            self.increment("provider_small_updates")
        elif nbytes <= _LARGE_UPDATE:
            self.increment("provider_medium_updates")
        else:
            self.increment("provider_large_updates")

    def check_alignment(self, address: int) -> None:
        """Count an access at ``address`` as 32-byte aligned or not."""
        if address % _ALIGNMENT == 0:
            self.increment("aligned_loads")
        else:
            self.increment("unaligned_loads")

    @property
    def _batch_total(self) -> int:
        return self.batch_8block_hits + self.batch_large_hits + self.batch_partial_hits

    @property
    def _ghash_total(self) -> int:
        return self.ghash_clmul8_calls + self.ghash_scalar_calls

    def _pct_suboptimal(self) -> float:
        return 100.0 * self.batch_partial_hits / self._batch_total

    def _pct_small(self) -> float:
        return 100.0 * self.provider_small_updates / self.provider_update_calls

    def _pct_ghash_optimized(self) -> float:
        return 100.0 * self.ghash_clmul8_calls / self._ghash_total

    def recommendations(self) -> list[str]:
        """Return the performance recommendations the counters call for."""
        advice = []
        if self._batch_total and self._pct_suboptimal() > 20.0:
            advice.append("Implement FFI coalescing to increase 8-block batch rate")
        if self.provider_update_calls and self._pct_small() > 30.0:
            advice.append(
                "Provider receiving many small updates - add accumulation buffer"
            )
        if self._ghash_total and self._pct_ghash_optimized() < 80.0:
            advice.append("GHASH not using 8-way path - check batch sizes")
        return advice

    def report(self) -> str:
        """Return the full diagnostics report as text."""
        lines = [
            "",
            _RULE,
            "  soliton Performance Diagnostics Report",
            _RULE,
            "",
            "Backend Configuration:",
            f"  Selected backend: {self.selected_backend or 'unknown'}",
            "",
            "GCM Operation Counts:",
            f"  init():           {self.gcm_init_calls:12d}",
            f"  aad_update():     {self.gcm_aad_calls:12d}",
            f"  encrypt_update(): {self.gcm_encrypt_calls:12d}",
            f"  decrypt_update(): {self.gcm_decrypt_calls:12d}",
            f"  final():          {self.gcm_final_calls:12d}",
            "",
            "Batch Size Distribution:",
            f"  8-block batches:  {self.batch_8block_hits:12d} (optimal)",
            f"  >8 block batches: {self.batch_large_hits:12d} (good)",
            f"  <8 block batches: {self.batch_partial_hits:12d} (suboptimal)",
            f"  Total blocks:     {self.total_blocks_processed:12d}",
        ]
        if self._batch_total:
            pct_optimal = 100.0 * self.batch_8block_hits / self._batch_total
            pct_suboptimal = self._pct_suboptimal()
            lines.append(f"  Optimal ratio:    {pct_optimal:12.1f}%")
            lines.append(f"  Suboptimal ratio: {pct_suboptimal:12.1f}%")
            if pct_suboptimal > 20.0:
                lines.append(
                    "  ⚠️  WARNING: High suboptimal batch rate - FFI coalescing needed!"
                )
        megabytes = self.ghash_total_bytes / (1024.0 * 1024.0)
        lines += [
            "",
            "GHASH Path Selection:",
            f"  8-way CLMUL:      {self.ghash_clmul8_calls:12d} calls",
            f"  Scalar fallback:  {self.ghash_scalar_calls:12d} calls",
            f"  Total bytes:      {self.ghash_total_bytes:12d} ({megabytes:.2f} MB)",
        ]
        if self._ghash_total:
            pct_optimized = self._pct_ghash_optimized()
            lines.append(f"  Optimized ratio:  {pct_optimized:12.1f}%")
            if pct_optimized < 80.0:
                lines.append("  ⚠️  WARNING: Low optimized GHASH usage!")
        lines += [
            "",
            "AES Path Selection:",
            f"  VAES calls:       {self.aes_vaes_calls:12d}",
            f"  Scalar calls:     {self.aes_scalar_calls:12d}",
            f"  Total blocks:     {self.aes_total_blocks:12d}",
            "",
            "Tail Handling:",
            f"  Partial blocks:   {self.tail_partial_blocks:12d}",
            f"  Sub-block bytes:  {self.tail_sub_block_bytes:12d}",
            "",
            "Provider Update Analysis:",
            f"  Total updates:    {self.provider_update_calls:12d}",
            f"  Small (<128B):    {self.provider_small_updates:12d}",
            f"  Medium (≤8KB):    {self.provider_medium_updates:12d}",
            f"  Large (>8KB):     {self.provider_large_updates:12d}",
        ]
        if self.provider_update_calls:
            pct_small = self._pct_small()
            avg_blocks = self.total_blocks_processed / self.provider_update_calls
            lines.append(f"  Small update %:   {pct_small:12.1f}%")
            lines.append(f"  Avg blocks/call:  {avg_blocks:12.1f}")
            if pct_small > 30.0:
                lines.append(
                    "  ⚠️  WARNING: High small update rate - "
                    "coalescing strongly recommended!"
                )
            if avg_blocks < 6.0:
                lines.append(
                    "  ⚠️  WARNING: Low average batch size - "
                    "not utilizing 8-way kernel!"
                )
        lines += [
            "",
            "Memory Alignment:",
            f"  Aligned (32B):    {self.aligned_loads:12d}",
            f"  Unaligned:        {self.unaligned_loads:12d}",
        ]
        alignment_total = self.aligned_loads + self.unaligned_loads
        if alignment_total:
            pct_aligned = 100.0 * self.aligned_loads / alignment_total
            lines.append(f"  Aligned ratio:    {pct_aligned:12.1f}%")
        lines += ["", _RULE, "Performance Recommendations:"]
        advice = self.recommendations()
        lines += [f"  [{n}] {text}" for n, text in enumerate(advice, start=1)]
        if not advice:
            lines.append("  ✓ No major performance issues detected")
        lines.append(_RULE)
        return "\n".join(lines) + "\n\n"

    def print_report(self, file: TextIO | None = None) -> None:
        """Write the report to ``file`` (standard output by default)."""
        (file if file is not None else sys.stdout).write(self.report())

    def reset(self) -> None:
        """Set every counter back to zero and forget the backend."""
        with self._lock:
            for name in self._counter_names():
                setattr(self, name, 0)
            self.selected_backend = ""


diagnostics = Diagnostics()