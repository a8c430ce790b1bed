import time
from enum import Enum
from typing import Callable, Iterator, Sequence


class Stage(str, Enum):
    TRANSFER = 'transfer'
    ANALYSIS = 'analysis'
    FINALIZE = 'finalize'


class ProgressStrategy:
    """Decides which progress values a pipeline job reports, and when.

    ``checkpoints(stage)`` yields the progress values of a stage in order,
    blocking between them as long as the strategy needs. ``analysis_start``
    is reported as soon as the job enters the analysis stage, before the
    classifier is called.
    """

    analysis_start: int = 40

    def checkpoints(self, stage: Stage) -> Iterator[int]:
        raise NotImplementedError


def _check_sequence(name: str, values: Sequence[int]) -> tuple[int, ...]:
    values = tuple(int(v) for v in values)
    if not values:
        raise ValueError(f"{name} checkpoints must not be empty")
    if any(v < 0 or v > 100 for v in values):
        raise ValueError(f"{name} checkpoints must be within 0..100: {values}")
    if any(b < a for a, b in zip(values, values[1:])):
        raise ValueError(f"{name} checkpoints must be ascending: {values}")
    return values


class SimulatedProgress(ProgressStrategy):
    """Fixed checkpoints separated by fixed delays.

    Args:

        sleep (callable): Blocking sleep used between checkpoints. The app
        passes the Socket.IO ``sleep`` so jobs yield cooperatively.

        delay_scale (float): Multiplier applied to every delay; 0 disables them.
    """

    def __init__(self,
                 sleep: Callable[[float], None] = time.sleep,
                 transfer: Sequence[int] = (0, 10, 20, 30),
                 analysis: Sequence[int] = (40, 55, 70),
                 finalize: Sequence[int] = (75, 87, 100),
                 transfer_delay: float = 0.15,
                 analysis_delay: float = 0.3,
                 finalize_delay: float = 0.15,
                 delay_scale: float = 1.0):
        self.sleep = sleep
        self.sequences = {
            Stage.TRANSFER: _check_sequence('transfer', transfer),
            Stage.ANALYSIS: _check_sequence('analysis', analysis),
            Stage.FINALIZE: _check_sequence('finalize', finalize),
        }
        if self.sequences[Stage.FINALIZE][-1] != 100:
            raise ValueError("finalize checkpoints must end at 100")
        self.analysis_start = self.sequences[Stage.ANALYSIS][0]
        self.delays = {
            Stage.TRANSFER: transfer_delay * delay_scale,
            Stage.ANALYSIS: analysis_delay * delay_scale,
            Stage.FINALIZE: finalize_delay * delay_scale,
        }

    def checkpoints(self, stage: Stage) -> Iterator[int]:
        delay = self.delays[stage]
        for value in self.sequences[stage]:
            if delay > 0:
                self.sleep(delay)
            yield value

    def __repr__(self) -> str:
        return f"SimulatedProgress({dict((s.value, v) for s, v in self.sequences.items())})"
