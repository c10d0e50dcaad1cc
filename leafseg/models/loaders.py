import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Dict, Optional

import numpy as np

from leafseg import config
from leafseg.errors import ErrorKind, Failure

log = logging.getLogger(__name__)

LEAF = "leaf"
DISEASE = "disease"
ROLES = (LEAF, DISEASE)

Runner = Callable[[np.ndarray], np.ndarray]


class ModelState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def _load_onnx(weights: str) -> Runner:
    import onnxruntime as ort
    opts = ort.SessionOptions()
    opts.intra_op_num_threads = config.MODEL_THREADS
    sess = ort.InferenceSession(weights, sess_options=opts, providers=["CPUExecutionProvider"])
    in_name = sess.get_inputs()[0].name

    def run(tensor: np.ndarray) -> np.ndarray:
        return sess.run(None, {in_name: tensor})[0]
    return run


def _load_torchscript(weights: str) -> Runner:
    import torch
    m = torch.jit.load(weights, map_location=config.DEVICE).eval()

    def run(tensor: np.ndarray) -> np.ndarray:
        with torch.inference_mode():
            out = m(torch.from_numpy(tensor).to(config.DEVICE))
        if isinstance(out, (list, tuple)):
            out = out[0]
        if isinstance(out, dict):
            out = out["out"]
        return out.detach().float().cpu().numpy()
    return run


def load_backend(weights: str) -> Runner:
    """Open a segmentation model; .onnx goes to onnxruntime, anything else to TorchScript."""
    if not weights or not os.path.exists(weights):
        raise FileNotFoundError(f"model weights not found: {weights!r}")
    if weights.lower().endswith(".onnx"):
        return _load_onnx(weights)
    return _load_torchscript(weights)


def to_grid(out: np.ndarray, size: int = config.INPUT_SIZE) -> np.ndarray:
    arr = np.asarray(out, dtype=np.float32)
    if arr.ndim > 2:
        arr = arr.reshape([d for d in arr.shape if d != 1] or [1])
    if arr.shape != (size, size):
        raise ValueError(f"expected {size}x{size} output, got shape {np.shape(out)}")
    grid = arr.copy()
    grid.flags.writeable = False
    return grid


class ModelHandle:
    """One segmentation model; calls into it are serialized."""

    def __init__(self, role: str) -> None:
        self.role = role
        self.state = ModelState.LOADING
        self.error: Optional[str] = None
        self._run: Optional[Runner] = None
        self._lock = threading.Lock()

    def load(self, weights: str, loader: Callable[[str], Runner]) -> None:
        try:
            self._run = loader(weights)
            self.state = ModelState.READY
            self.error = None
            log.info("%s model loaded from %s", self.role, weights)
        except Exception as e:
            self._run = None
            self.state = ModelState.FAILED
            self.error = str(e)
            log.error("%s model failed to load: %s", self.role, e)

    def run(self, tensor: np.ndarray) -> np.ndarray:
        with self._lock:
            return self._run(tensor)


class ModelRuntime:
    def __init__(self, weights: Optional[Dict[str, str]] = None,
                 loader: Callable[[str], Runner] = load_backend) -> None:
        self.weights = weights or {LEAF: config.LEAF_SEG_WEIGHTS, DISEASE: config.DISEASE_SEG_WEIGHTS}
        self.loader = loader
        self.handles: Dict[str, ModelHandle] = {role: ModelHandle(role) for role in ROLES}
        self._ready = threading.Event()
        self._start_lock = threading.Lock()
        self._loading: Optional[Future] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    # ---------- lifecycle ----------
    def initialize(self) -> Optional[Failure]:
        """Load every model; one failing does not stop the others. None means ready."""
        try:
            for role, handle in self.handles.items():
                handle.load(self.weights.get(role, ""), self.loader)
        finally:
            self._ready.set()
        failed = [f"{h.role}: {h.error}" for h in self.handles.values() if h.state is ModelState.FAILED]
        if failed:
            return Failure(ErrorKind.MODEL_LOAD_FAILURE, "; ".join(failed))
        return None

    def start(self) -> Future:
        with self._start_lock:
            if self._loading is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="model-load")
                self._loading = self._executor.submit(self.initialize)
                self._executor.shutdown(wait=False)
            return self._loading

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    @property
    def loaded(self) -> bool:
        return self._ready.is_set()

    def check_ready(self) -> Optional[Failure]:
        failed = [h for h in self.handles.values() if h.state is ModelState.FAILED]
        if failed:
            return Failure(ErrorKind.MODEL_LOAD_FAILURE,
                           "; ".join(f"{h.role}: {h.error}" for h in failed))
        if any(h.state is not ModelState.READY for h in self.handles.values()):
            return Failure(ErrorKind.NOT_READY, "models are still loading")
        return None

    def status(self) -> Dict[str, Any]:
        return {role: {"state": h.state.value, "error": h.error} for role, h in self.handles.items()}

    # ---------- inference ----------
    def infer(self, role: str, tensor: np.ndarray):
        """ProbabilityGrid for `role`, or a Failure; never raises."""
        handle = self.handles.get(role)
        if handle is None:
            return Failure(ErrorKind.INFERENCE_ERROR, f"unknown model role: {role}")
        if handle.state is not ModelState.READY:
            return Failure(ErrorKind.NOT_READY, f"{role} model is {handle.state.value}")
        try:
            return to_grid(handle.run(tensor))
        except Exception as e:
            log.warning("%s inference failed: %s", role, e)
            return Failure(ErrorKind.INFERENCE_ERROR, f"{role}: {e}")

    def infer_leaf(self, tensor: np.ndarray):
        return self.infer(LEAF, tensor)

    def infer_disease(self, tensor: np.ndarray):
        return self.infer(DISEASE, tensor)
