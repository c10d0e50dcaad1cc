import threading

import numpy as np

from leafseg.errors import ErrorKind, Failure
from leafseg.pipeline import InferenceResult, Pipeline, Stage
from leafseg.models.loaders import DISEASE, LEAF, ModelRuntime
from leafseg.severity import MAX_TIER

from conftest import SIZE, const_grid, make_runtime

TOTAL = SIZE * SIZE


def test_all_leaf_all_disease_is_max_tier(leaf_photo):
    pipe = Pipeline(make_runtime(const_grid(1.0), const_grid(1.0)))
    r = pipe.run(leaf_photo)
    assert isinstance(r, InferenceResult)
    assert r.leaf_pixels == TOTAL
    assert r.diseased_pixels == TOTAL
    assert r.ratio == 1.0
    assert r.severity.tier == MAX_TIER
    assert pipe.stage is Stage.DONE


def test_all_leaf_no_disease_is_healthy(leaf_photo):
    r = Pipeline(make_runtime(const_grid(1.0), const_grid(0.0))).run(leaf_photo)
    assert r.diseased_pixels == 0
    assert r.ratio == 0.0
    assert r.severity.tier == 0
    assert r.severity.treatment == ("No treatment necessary.",)


def test_no_leaf_is_degenerate_ratio(leaf_photo):
    pipe = Pipeline(make_runtime(const_grid(0.0), const_grid(1.0)))
    r = pipe.run(leaf_photo)
    assert isinstance(r, Failure)
    assert r.kind is ErrorKind.DEGENERATE_RATIO
    assert pipe.stage is Stage.FAILED


def test_result_images_are_independent(leaf_photo):
    leaf = const_grid(0.0)
    leaf[:, :128] = 1.0
    sick = const_grid(0.0)
    sick[:64, :64] = 1.0
    r = Pipeline(make_runtime(leaf, sick)).run(leaf_photo)
    assert r.leaf_pixels == SIZE * 128
    assert r.diseased_pixels == 64 * 64
    assert r.ratio == (64 * 64) / (SIZE * 128)
    assert r.resized.shape == r.leaf_isolated.shape == r.highlighted.shape == (SIZE, SIZE, 3)
    for a, b in [(r.resized, r.leaf_isolated), (r.resized, r.highlighted), (r.leaf_isolated, r.highlighted)]:
        assert not np.shares_memory(a, b)
    assert r.leaf_mask.sum() == r.leaf_pixels
    assert r.disease_mask.sum() == r.diseased_pixels
    assert r.elapsed_ms >= 0.0


def test_fully_diseased_leaf_band(leaf_photo):
    leaf = const_grid(0.0)
    leaf[:10] = 1.0
    r = Pipeline(make_runtime(leaf, const_grid(1.0))).run(leaf_photo)
    assert r.diseased_pixels == r.leaf_pixels == 10 * SIZE


def test_models_not_loaded_is_not_ready(leaf_photo):
    calls = []
    pipe = Pipeline(make_runtime(const_grid(1.0), const_grid(1.0), calls=calls, start=False))
    r = pipe.run(leaf_photo)
    assert r.kind is ErrorKind.NOT_READY
    assert calls == []


def test_failed_load_is_reported(leaf_photo):
    rt = make_runtime(const_grid(1.0), RuntimeError("bad file"), start=False)
    rt.initialize()
    r = Pipeline(rt).run(leaf_photo)
    assert r.kind is ErrorKind.MODEL_LOAD_FAILURE


def test_inference_error_aborts_then_runtime_stays_usable(leaf_photo):
    state = {"fail": True}

    def disease():
        if state["fail"]:
            raise RuntimeError("shape mismatch")
        return const_grid(0.0)

    pipe = Pipeline(make_runtime(const_grid(1.0), disease))
    r = pipe.run(leaf_photo)
    assert r.kind is ErrorKind.INFERENCE_ERROR
    state["fail"] = False
    assert isinstance(pipe.run(leaf_photo), InferenceResult)


def test_invalid_image_is_reported():
    pipe = Pipeline(make_runtime(const_grid(1.0), const_grid(1.0)))
    r = pipe.run(np.zeros((0, 0, 3), dtype=np.uint8))
    assert r.kind is ErrorKind.INVALID_INPUT


def test_submit_runs_in_background(leaf_photo):
    pipe = Pipeline(make_runtime(const_grid(1.0), const_grid(0.0)))
    r = pipe.submit(leaf_photo).result(timeout=10)
    assert isinstance(r, InferenceResult)
    assert pipe.submit(leaf_photo).result(timeout=10).severity.tier == 0
    pipe.shutdown()


def test_overlapping_request_is_rejected_busy(leaf_photo):
    entered = threading.Event()
    release = threading.Event()

    def slow_leaf():
        entered.set()
        release.wait(5)
        return const_grid(1.0)

    pipe = Pipeline(make_runtime(slow_leaf, const_grid(0.0)))
    first = pipe.submit(leaf_photo)
    assert entered.wait(5)
    second = pipe.submit(leaf_photo)
    assert second.done()
    assert second.result().kind is ErrorKind.BUSY
    assert pipe.run(leaf_photo).kind is ErrorKind.BUSY
    release.set()
    assert isinstance(first.result(timeout=10), InferenceResult)
    pipe.shutdown()


def test_models_run_leaf_then_disease_on_the_same_tensor(leaf_photo):
    calls = []
    r = Pipeline(make_runtime(const_grid(1.0), const_grid(0.0), calls=calls)).run(leaf_photo)
    assert isinstance(r, InferenceResult)
    assert calls == [("leaf", (1, SIZE, SIZE, 3)), ("disease", (1, SIZE, SIZE, 3))]


def test_both_models_receive_one_shared_tensor(leaf_photo):
    seen = []

    def load(weights):
        def run(tensor):
            seen.append((weights, tensor))
            return const_grid(1.0)
        return run

    rt = ModelRuntime(weights={LEAF: "leaf", DISEASE: "disease"}, loader=load)
    rt.initialize()
    Pipeline(rt).run(leaf_photo)
    assert [w for w, _ in seen] == ["leaf", "disease"]
    assert seen[0][1] is seen[1][1]


def test_leaf_inference_failure_skips_disease_model(leaf_photo):
    calls = []

    def broken_leaf():
        raise RuntimeError("native failure")

    pipe = Pipeline(make_runtime(broken_leaf, const_grid(0.0), calls=calls))
    r = pipe.run(leaf_photo)
    assert r.kind is ErrorKind.INFERENCE_ERROR
    assert [c[0] for c in calls] == ["leaf"]


def test_unexpected_error_is_reported_as_failure(leaf_photo, monkeypatch):
    import leafseg.pipeline as pipeline_mod

    def oom(*args, **kwargs):
        raise MemoryError("oom")

    monkeypatch.setattr(pipeline_mod, "highlight_disease", oom)
    pipe = Pipeline(make_runtime(const_grid(1.0), const_grid(1.0)))
    r = pipe.run(leaf_photo)
    assert isinstance(r, Failure)
    assert r.kind is ErrorKind.INFERENCE_ERROR
    assert "oom" in r.message
    assert pipe.stage is Stage.FAILED
    # lock released, next run goes through
    monkeypatch.undo()
    assert isinstance(pipe.run(leaf_photo), InferenceResult)


def test_unexpected_error_through_submit_resolves_to_failure(leaf_photo, monkeypatch):
    import leafseg.pipeline as pipeline_mod

    def bad_resize(*args, **kwargs):
        raise TypeError("unsupported image object")

    monkeypatch.setattr(pipeline_mod, "resize", bad_resize)
    pipe = Pipeline(make_runtime(const_grid(1.0), const_grid(1.0)))
    r = pipe.submit(leaf_photo).result(timeout=10)
    assert r.kind is ErrorKind.INFERENCE_ERROR
    assert pipe.stage is Stage.FAILED
    pipe.shutdown()
