# leafseg/pipeline.py

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import numpy as np

from leafseg import config
from leafseg.errors import ErrorKind, Failure
from leafseg.fusion import disease_mask, highlight_disease, isolate_leaf, leaf_mask
from leafseg.models.loaders import ModelRuntime
from leafseg.preprocess import resize, to_tensor
from leafseg.severity import Severity, SeverityTable

log = logging.getLogger(__name__)


class Stage(str, Enum):
    IDLE = "idle"
    PREPROCESSING = "preprocessing"
    INFERRING_LEAF = "inferring_leaf"
    FUSING_LEAF = "fusing_leaf"
    INFERRING_DISEASE = "inferring_disease"
    FUSING_DISEASE = "fusing_disease"
    CLASSIFYING = "classifying"
    DONE = "done"
    FAILED = "failed"


@dataclass
class InferenceResult:
    request_id: str
    resized: np.ndarray
    highlighted: np.ndarray
    leaf_isolated: np.ndarray
    leaf_pixels: int
    diseased_pixels: int
    elapsed_ms: float
    ratio: float
    severity: Severity
    leaf_mask: np.ndarray
    disease_mask: np.ndarray


class _Abort(Exception):
    def __init__(self, failure: Failure) -> None:
        super().__init__(str(failure))
        self.failure = failure


class Pipeline:
    def __init__(self, runtime: Optional[ModelRuntime] = None,
                 severity: Optional[SeverityTable] = None) -> None:
        self.runtime = runtime or ModelRuntime()
        self.severity = severity or SeverityTable()
        self.stage = Stage.IDLE
        self._busy = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pipeline")

    # ---------- public entry ----------
    def submit(self, image) -> Future:
        """Run in the background; a request overlapping one in flight resolves to BUSY."""
        if not self._busy.acquire(blocking=False):
            fut: Future = Future()
            fut.set_result(Failure(ErrorKind.BUSY, "another image is being processed"))
            return fut
        try:
            return self._executor.submit(self._run_locked, image)
        except Exception:
            self._busy.release()
            raise

    def run(self, image) -> Union[InferenceResult, Failure]:
        if not self._busy.acquire(blocking=False):
            return Failure(ErrorKind.BUSY, "another image is being processed")
        return self._run_locked(image)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    # ---------- internals ----------
    def _run_locked(self, image) -> Union[InferenceResult, Failure]:
        try:
            return self._run(image)
        finally:
            self._busy.release()

    def _enter(self, stage: Stage) -> None:
        log.debug("pipeline %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def _grid(self, out):
        if isinstance(out, Failure):
            raise _Abort(out)
        return out

    def _run(self, image) -> Union[InferenceResult, Failure]:
        self.stage = Stage.IDLE
        req_id = str(uuid.uuid4())

        not_ready = self.runtime.check_ready()
        if not_ready is not None:
            self._enter(Stage.FAILED)
            return not_ready

        try:
            t0 = time.perf_counter()

            self._enter(Stage.PREPROCESSING)
            try:
                resized = resize(image, config.INPUT_SIZE, config.INPUT_SIZE)
            except ValueError as e:
                raise _Abort(Failure(ErrorKind.INVALID_INPUT, str(e)))
            tensor = to_tensor(resized, config.INPUT_LAYOUT)

            self._enter(Stage.INFERRING_LEAF)
            leaf_grid = self._grid(self.runtime.infer_leaf(tensor))

            self._enter(Stage.FUSING_LEAF)
            leaf_img, leaf_count = isolate_leaf(resized, leaf_grid, config.THRESH_LEAF)

            self._enter(Stage.INFERRING_DISEASE)
            disease_grid = self._grid(self.runtime.infer_disease(tensor))

            self._enter(Stage.FUSING_DISEASE)
            sick_img, sick_count = highlight_disease(
                resized, leaf_grid, disease_grid, config.BRIGHTEN_GAIN, config.DARKEN_FACTOR
            )
            elapsed_ms = (time.perf_counter() - t0) * 1000.0

            log.info("[%s] leaf pixels: %d, diseased pixels: %d, %.1f ms",
                     req_id, leaf_count, sick_count, elapsed_ms)

            self._enter(Stage.CLASSIFYING)
            if leaf_count == 0:
                raise _Abort(Failure(ErrorKind.DEGENERATE_RATIO, "no leaf pixels found in image"))
            ratio = sick_count / leaf_count
            severity = self.severity.classify(ratio)

            result = InferenceResult(
                request_id=req_id,
                resized=resized,
                highlighted=sick_img,
                leaf_isolated=leaf_img,
                leaf_pixels=leaf_count,
                diseased_pixels=sick_count,
                elapsed_ms=elapsed_ms,
                ratio=ratio,
                severity=severity,
                leaf_mask=leaf_mask(leaf_grid, config.THRESH_LEAF),
                disease_mask=disease_mask(leaf_grid, disease_grid,
                                          config.THRESH_LEAF, config.THRESH_DISEASE),
            )
            self._enter(Stage.DONE)
            return result
        except _Abort as e:
            log.warning("[%s] failed in %s: %s", req_id, self.stage.value, e.failure)
            self._enter(Stage.FAILED)
            return e.failure
        except ValueError as e:
            log.warning("[%s] failed in %s: %s", req_id, self.stage.value, e)
            self._enter(Stage.FAILED)
            return Failure(ErrorKind.INFERENCE_ERROR, str(e))
        except Exception as e:
            log.exception("[%s] unexpected error in %s", req_id, self.stage.value)
            self._enter(Stage.FAILED)
            return Failure(ErrorKind.INFERENCE_ERROR, f"{type(e).__name__}: {e}")
