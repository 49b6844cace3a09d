"""
Memory-decay forecasting.

Wraps the FSRS model (fsrs-rs-python) behind a small interface so the
scheduling engine can be driven by a deterministic stand-in in tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from loguru import logger

from recall.errors import ForecastError

# FSRS-6 default decay (w20)
DEFAULT_DECAY = 0.1542


@dataclass(frozen=True)
class MemoryState:
    """Stability (days) and difficulty (1-10) of one card's memory."""

    stability: float
    difficulty: float


@dataclass(frozen=True)
class OutcomeForecast:
    """Model recommendation for one outcome."""

    memory: MemoryState
    interval_days: float


@dataclass(frozen=True)
class Forecast:
    on_pass: OutcomeForecast
    on_fail: OutcomeForecast


class Forecaster(Protocol):
    def forecast(
        self,
        prior: MemoryState | None,
        desired_retention: float,
        elapsed_days: int,
    ) -> Forecast: ...


class FsrsForecaster:
    """
    FSRS forecaster using the library's default parameters.

    The model is built on construction; failure to load or initialize it
    raises ForecastError.
    """

    def __init__(self, parameters: list[float] | None = None):
        try:
            import fsrs_rs_python
        except ImportError as e:
            raise ForecastError("fsrs-rs-python is not installed") from e

        self._lib = fsrs_rs_python
        params = parameters if parameters is not None else list(fsrs_rs_python.DEFAULT_PARAMETERS)
        try:
            self._fsrs = fsrs_rs_python.FSRS(parameters=params)
        except Exception as e:
            raise ForecastError(f"failed to initialize FSRS model: {e}") from e
        logger.debug(f"FSRS model initialized with {len(params)} parameters")

    def forecast(
        self,
        prior: MemoryState | None,
        desired_retention: float,
        elapsed_days: int,
    ) -> Forecast:
        """
        Ask the model for the next state under both outcomes.

        Args:
            prior: Current memory state (None for a card never reviewed)
            desired_retention: Target recall probability
            elapsed_days: Whole days since the last review

        Raises:
            ForecastError: If the model rejects its inputs
        """
        if elapsed_days < 0:
            raise ForecastError(f"elapsed days must be non-negative, got {elapsed_days}")

        memory = None
        if prior is not None:
            memory = self._lib.MemoryState(stability=prior.stability, difficulty=prior.difficulty)
        try:
            states = self._fsrs.next_states(memory, desired_retention, elapsed_days)
        except Exception as e:
            raise ForecastError(f"FSRS rejected review input: {e}") from e

        return Forecast(
            on_pass=self._outcome(states.good),
            on_fail=self._outcome(states.again),
        )

    @staticmethod
    def _outcome(item_state) -> OutcomeForecast:
        return OutcomeForecast(
            memory=MemoryState(
                stability=float(item_state.memory.stability),
                difficulty=float(item_state.memory.difficulty),
            ),
            interval_days=float(item_state.interval),
        )


def retrievability(stability: float, elapsed_days: float, decay: float = DEFAULT_DECAY) -> float:
    """
    Probability of recall after ``elapsed_days`` under the FSRS power
    forgetting curve. Equals 0.9 when ``elapsed_days == stability``.
    """
    if stability <= 0:
        return 0.0
    factor = 0.9 ** (-1.0 / decay) - 1.0
    return (1.0 + factor * max(elapsed_days, 0.0) / stability) ** -decay
