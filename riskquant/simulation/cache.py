"""
Session-scoped memo of Monte Carlo results.

Results are keyed by a fingerprint: a SHA-256 of the canonical JSON of
every parameter that changes the output (all event specs, iterations,
confidence level, seed). Display-only event fields (name, currency) are
left out.

Any edit to a fingerprint-relevant field clears the whole cache. One
instance belongs to one session and is not safe for concurrent writers;
give each session its own cache.
"""

import hashlib
import json
import logging
from typing import Any, Callable, Dict, Optional, Sequence

from ..types import (
    DISPLAY_ONLY_FIELDS,
    DistributionSpec,
    RiskEvent,
    SimulationConfig,
    SimulationResult,
)

logger = logging.getLogger(__name__)


def _canonical_spec(spec: DistributionSpec) -> Dict[str, Any]:
    """to_dict with every parameter as a float: 1000, 1000.0 and np.int64(1000) hash alike."""
    return {
        key: value if isinstance(value, str) else float(value)
        for key, value in spec.to_dict().items()
    }


def fingerprint(
    events: Sequence[RiskEvent],
    config: SimulationConfig,
    seed: Optional[int] = None
) -> str:
    """Canonical hash of everything that influences a simulation result."""
    payload = {
        'events': [
            {
                'severity': _canonical_spec(event.severity),
                'frequency': _canonical_spec(event.frequency),
            }
            for event in events
        ],
        'iterations': int(config.iterations),
        'confidence_level': float(config.confidence_level),
        'seed': None if seed is None else int(seed),
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


class ResultCache:
    """
    Get-or-compute store of SimulationResult keyed by fingerprint.

    Attributes:
        hits: Lookups served from the cache
        misses: Lookups that ran the compute function
    """

    def __init__(self) -> None:
        self._entries: Dict[str, SimulationResult] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[SimulationResult]:
        return self._entries.get(key)

    def get_or_compute(
        self,
        events: Sequence[RiskEvent],
        config: SimulationConfig,
        compute: Callable[[], SimulationResult],
        seed: Optional[int] = None
    ) -> SimulationResult:
        """
        Return the cached result for these parameters, computing it on a miss.

        The same object is returned for every hit on an unchanged fingerprint.
        """
        key = fingerprint(events, config, seed)
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            logger.debug(f"Result cache hit {key[:12]}")
            return cached

        self.misses += 1
        result = compute()
        self._entries[key] = result
        logger.debug(f"Result cache stored {key[:12]} ({len(self._entries)} entries)")
        return result

    def invalidate(self) -> None:
        """Drop every entry."""
        if self._entries:
            logger.info(f"Invalidating result cache ({len(self._entries)} entries)")
        self._entries.clear()

    def notify_change(self, field_name: str) -> bool:
        """
        Report an edit to a form field.

        Clears the cache unless the field is display-only.

        Returns:
            True if the cache was invalidated
        """
        if field_name in DISPLAY_ONLY_FIELDS:
            return False
        self.invalidate()
        return True
