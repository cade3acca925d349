"""Pluggable payload encoding and risk scoring.

The sync engine only depends on the two abstract interfaces below, so a real
confidential-computation backend can replace the simulated defaults without
touching the engine.
"""

from __future__ import annotations

import base64
import json
import random
from abc import ABC, abstractmethod
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Payload codec
# ---------------------------------------------------------------------------

class PayloadCodec(ABC):
    """Turns submitted free-text fields into the opaque ``data`` string."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable codec name."""

    @abstractmethod
    def encode(self, fields: dict[str, Any]) -> str:
        """Return the opaque payload for *fields*."""

    @abstractmethod
    def decode(self, payload: str) -> dict[str, Any]:
        """Invert :meth:`encode`.  Raises ``ValueError`` on foreign payloads."""


class SimulatedFheCodec(PayloadCodec):
    """Reversible stand-in for homomorphic encryption.

    Produces ``FHE-<base64(json(fields))>``.  Nothing here is confidential.
    """

    PREFIX = "FHE-"

    @property
    def name(self) -> str:
        return "simulated-fhe"

    def encode(self, fields: dict[str, Any]) -> str:
        body = json.dumps(fields, separators=(",", ":")).encode("utf-8")
        return self.PREFIX + base64.b64encode(body).decode("ascii")

    def decode(self, payload: str) -> dict[str, Any]:
        if not payload.startswith(self.PREFIX):
            raise ValueError("payload was not produced by the simulated FHE codec")
        try:
            body = base64.b64decode(payload[len(self.PREFIX):], validate=True)
            fields = json.loads(body)
        except (ValueError, json.JSONDecodeError) as exc:
            raise ValueError(f"corrupt simulated FHE payload: {exc}") from exc
        if not isinstance(fields, dict):
            raise ValueError("simulated FHE payload is not an object")
        return fields


# ---------------------------------------------------------------------------
# Risk scoring
# ---------------------------------------------------------------------------

class RiskScorer(ABC):
    """Assigns a 1–10 risk level to a new record."""

    MIN_LEVEL = 1
    MAX_LEVEL = 10

    @abstractmethod
    def score(self, fields: dict[str, Any]) -> int:
        """Return an integer in ``[MIN_LEVEL, MAX_LEVEL]``."""


class RandomRiskScorer(RiskScorer):
    """Uniformly random risk level, as the demo dashboard assigns it."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def score(self, fields: dict[str, Any]) -> int:
        return self._rng.randint(self.MIN_LEVEL, self.MAX_LEVEL)
