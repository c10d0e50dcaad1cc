from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    MODEL_LOAD_FAILURE = "MODEL_LOAD_FAILURE"
    NOT_READY = "NOT_READY"
    INFERENCE_ERROR = "INFERENCE_ERROR"
    DEGENERATE_RATIO = "DEGENERATE_RATIO"
    BUSY = "BUSY"
    INVALID_INPUT = "INVALID_INPUT"


HTTP_STATUS = {
    ErrorKind.MODEL_LOAD_FAILURE: 500,
    ErrorKind.NOT_READY: 503,
    ErrorKind.INFERENCE_ERROR: 500,
    ErrorKind.DEGENERATE_RATIO: 422,
    ErrorKind.BUSY: 503,
    ErrorKind.INVALID_INPUT: 400,
}


@dataclass(frozen=True)
class Failure:
    """Typed failure handed back to callers instead of raising."""
    kind: ErrorKind
    message: str = ""

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}" if self.message else self.kind.value
