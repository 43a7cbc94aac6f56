"""
Tests for the object detection stage: enqueue -> submit -> fetch.
"""

import threading
from unittest.mock import MagicMock

import numpy as np
import pytest

from roi_inference.detection.object_detection import ObjectDetection
from roi_inference.errors import ConfigurationError, DecodeError, InferenceError, SequencingError
from roi_inference.inference.callable_backend import CallableEngine
from roi_inference.models.descriptor import ObjectDetectionModel
from roi_inference.models.detection import BoundingBox, ObjectDetectionResult


def image(w, h):
    return np.zeros((h, w, 3), dtype=np.uint8)


@pytest.fixture
def stage(engine, model):
    s = ObjectDetection(engine, show_output_thresh=0.5)
    s.load_network(model)
    return s


class TestLoadNetwork:
    def test_null_model_rejected(self, engine):
        stage = ObjectDetection(engine)
        with pytest.raises(ConfigurationError):
            stage.load_network(None)

    def test_incomplete_model_rejected(self, engine):
        stage = ObjectDetection(engine)
        with pytest.raises(ConfigurationError):
            stage.load_network(ObjectDetectionModel(input_shape=(1, 3, 300, 300), max_proposal_count=0))
        assert stage.model is None

    def test_engine_input_shape_mismatch(self, network, model):
        engine = CallableEngine(network, input_shape=(1, 3, 300, 300))
        try:
            with pytest.raises(ConfigurationError):
                ObjectDetection(engine).load_network(model)
        finally:
            engine.close()

    def test_engine_output_shape_mismatch(self, network, model):
        engine = CallableEngine(network, output_shape=(1, 1, 100, 7))
        try:
            with pytest.raises(ConfigurationError):
                ObjectDetection(engine).load_network(model)
        finally:
            engine.close()

    def test_matching_engine_shapes_accepted(self, network, model):
        engine = CallableEngine(network, input_shape=(4, 3, 32, 32), output_shape=(1, 1, 16, 7))
        try:
            stage = ObjectDetection(engine)
            stage.load_network(model)
            assert stage.model is model
        finally:
            engine.close()

    def test_swap_discards_buffered_regions(self, stage, model):
        assert stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        stage.load_network(model)
        assert stage.buffered_count == 0

    def test_swap_rejected_while_in_flight(self, stage, model, network, raw_output):
        network.outputs.append(raw_output([[]], max_proposal_count=4))
        stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        stage.submit_request()
        with pytest.raises(SequencingError):
            stage.load_network(model)
        stage.fetch_results()

    def test_enqueue_without_model(self, engine):
        with pytest.raises(ConfigurationError):
            ObjectDetection(engine).enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))

    def test_submit_without_model(self, engine):
        with pytest.raises(ConfigurationError):
            ObjectDetection(engine).submit_request()


class TestEnqueue:
    def test_valid_region_grows_buffer_by_one(self, stage):
        assert stage.enqueue(image(100, 100), BoundingBox(0, 0, 100, 100)) is True
        assert stage.buffered_count == 1
        assert stage.enqueue(image(50, 50), (200, 0, 50, 50)) is True
        assert stage.buffered_count == 2

    def test_degenerate_region_is_skipped(self, stage):
        assert stage.enqueue(image(0, 10), BoundingBox(0, 0, 0, 10)) is False
        assert stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 0)) is False
        assert stage.buffered_count == 0

    def test_full_batch_is_skipped(self, stage, model):
        for _ in range(model.max_batch_size):
            assert stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        assert stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10)) is False
        assert stage.buffered_count == model.max_batch_size

    def test_enqueue_does_not_run_inference(self, stage, engine):
        stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        assert engine.calls == 0
        assert stage.in_flight is False

    def test_enqueue_while_in_flight_rejected(self, stage, network, raw_output):
        network.outputs.append(raw_output([[]]))
        stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        stage.submit_request()
        with pytest.raises(SequencingError):
            stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        stage.fetch_results()


class TestSubmit:
    def test_empty_buffer_fails(self, stage, engine):
        with pytest.raises(SequencingError):
            stage.submit_request()
        assert stage.in_flight is False
        assert engine.calls == 0

    def test_submits_once(self, stage, network, raw_output):
        network.outputs.append(raw_output([[], []]))
        stage.enqueue(image(100, 100), BoundingBox(0, 0, 100, 100))
        stage.enqueue(image(50, 50), BoundingBox(200, 0, 250, 50))
        assert stage.submit_request() is True
        assert stage.in_flight is True

        stage.fetch_results()
        assert len(network.blobs) == 1
        assert network.blobs[0].shape == (2, 3, 32, 32)

    def test_second_submit_before_fetch_fails(self, stage, network, engine, raw_output):
        network.outputs.append(raw_output([[]]))
        stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        stage.submit_request()
        with pytest.raises(SequencingError):
            stage.submit_request()
        stage.fetch_results()
        assert engine.calls == 1

    def test_engine_failure_to_start_is_surfaced(self, model):
        engine = MagicMock()
        engine.input_shape = None
        engine.output_shape = None
        engine.run_async.side_effect = OSError("device lost")
        stage = ObjectDetection(engine)
        stage.load_network(model)
        stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))

        with pytest.raises(InferenceError):
            stage.submit_request()
        assert stage.in_flight is False


class TestFetch:
    def test_two_region_scenario(self, stage, network, raw_output):
        network.outputs.append(raw_output([
            [(1, 0.9, 0.1, 0.1, 0.5, 0.5)],
            [(2, 0.2, 0.0, 0.0, 1.0, 1.0)],
        ]))
        stage.enqueue(image(100, 100), BoundingBox.from_xywh(0, 0, 100, 100))
        stage.enqueue(image(50, 50), BoundingBox.from_xywh(200, 0, 50, 50))
        stage.submit_request()

        assert stage.fetch_results() is True
        assert stage.get_results_length() == 1
        result = stage.get_location_result(0)
        assert isinstance(result, ObjectDetectionResult)
        assert result.location.as_tuple() == pytest.approx((10, 10, 50, 50), abs=1e-3)
        assert result.label == "person"
        assert result.confidence == pytest.approx(0.9)

    def test_constrained_results_match_passing_detections(self, stage, network, raw_output):
        network.outputs.append(raw_output([[
            (1, 0.9, 0.1, 0.1, 0.4, 0.4),
            (1, 0.9, 0.5, 0.1, 0.5, 0.9),
            (2, 0.8, 0.7, 0.7, 1.3, 1.2),
            (2, 0.4, 0.0, 0.0, 1.0, 1.0),
        ]]))
        stage.enqueue(image(100, 100), BoundingBox.from_xywh(20, 30, 100, 100))
        stage.submit_request()

        assert stage.enable_roi_constraint is True
        assert stage.fetch_results() is True
        assert stage.get_results_length() == 3
        zero_width = stage.get_location_result(1).location
        assert zero_width.as_tuple() == pytest.approx((70, 40, 70, 120))
        overhang = stage.get_location_result(2).location
        assert overhang.as_tuple() == pytest.approx((90, 100, 120, 130))

    def test_full_normalized_box_maps_to_region(self, engine, model, network, raw_output):
        stage = ObjectDetection(engine)
        stage.load_network(model)
        network.outputs.append(raw_output([[(1, 0.3, 0, 0, 1, 1)]]))
        stage.enqueue(image(64, 48), BoundingBox.from_xywh(300, 200, 64, 48))
        stage.submit_request()
        stage.fetch_results()
        assert stage.get_location_result(0).location.as_tuple() == (300, 200, 364, 248)

    def test_fetch_clears_buffer_even_when_all_filtered(self, stage, network, raw_output):
        network.outputs.append(raw_output([[(1, 0.1, 0, 0, 1, 1)]]))
        stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        stage.submit_request()

        assert stage.fetch_results() is False
        assert stage.buffered_count == 0
        assert stage.in_flight is False
        assert stage.get_results_length() == 0

    def test_fetch_without_submit_keeps_previous_results(self, stage, network, raw_output):
        network.outputs.append(raw_output([[(1, 0.9, 0, 0, 1, 1)]]))
        stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        stage.submit_request()
        stage.fetch_results()
        before = stage.results

        with pytest.raises(SequencingError):
            stage.fetch_results()
        assert stage.results == before
        assert stage.get_results_length() == 1

    def test_fetch_on_fresh_stage_fails(self, stage):
        with pytest.raises(SequencingError):
            stage.fetch_results()
        assert stage.get_results_length() == 0

    def test_results_replaced_wholesale(self, stage, network, raw_output):
        network.outputs.append(raw_output([[(1, 0.9, 0, 0, 1, 1), (2, 0.9, 0, 0, 0.5, 0.5)]]))
        network.outputs.append(raw_output([[(2, 0.8, 0, 0, 1, 1)]]))
        for _ in range(2):
            stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
            stage.submit_request()
            stage.fetch_results()
        assert stage.get_results_length() == 1
        assert stage.get_location_result(0).label == "car"

    def test_decode_error_keeps_results_and_consumes_buffer(self, stage, network, raw_output):
        network.outputs.append(raw_output([[(1, 0.9, 0, 0, 1, 1)]]))
        # Second cycle: engine answers for one region although two were sent
        network.outputs.append(raw_output([[(2, 0.9, 0, 0, 1, 1)]]))

        stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        stage.submit_request()
        stage.fetch_results()

        stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        stage.enqueue(image(10, 10), BoundingBox(20, 0, 30, 10))
        stage.submit_request()
        with pytest.raises(DecodeError):
            stage.fetch_results()

        assert stage.get_location_result(0).label == "person"
        assert stage.buffered_count == 0
        assert stage.in_flight is False

    def test_engine_failure_during_inference_is_surfaced(self, stage):
        def broken(blob, batch):
            raise RuntimeError("kernel panic")

        stage._engine = CallableEngine(broken)
        try:
            stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
            stage.submit_request()
            with pytest.raises(InferenceError):
                stage.fetch_results()
            assert stage.in_flight is False
        finally:
            stage._engine.close()


class TestResultAccess:
    def test_index_equal_to_length_is_rejected(self, stage, network, raw_output):
        network.outputs.append(raw_output([[(1, 0.9, 0, 0, 1, 1)]]))
        stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        stage.submit_request()
        stage.fetch_results()

        with pytest.raises(IndexError):
            stage.get_location_result(stage.get_results_length())
        with pytest.raises(IndexError):
            stage.get_location_result(-1)

    def test_name(self, engine):
        assert ObjectDetection(engine).get_name() == "ObjectDetection"
        assert ObjectDetection(engine, name="PedestrianDetection").get_name() == "PedestrianDetection"

    def test_observe_output_hands_over_current_set(self, stage, network, raw_output):
        network.outputs.append(raw_output([[(1, 0.9, 0, 0, 1, 1)]]))
        stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
        stage.submit_request()
        stage.fetch_results()

        sink = MagicMock()
        stage.observe_output(sink)
        sink.accept.assert_called_once_with(stage.results)
        assert isinstance(sink.accept.call_args[0][0], tuple)


class TestConcurrency:
    def test_overlapping_call_is_rejected(self, model, raw_output):
        started = threading.Event()
        release = threading.Event()

        class SlowEngine(CallableEngine):
            def wait_and_read(self, request):
                started.set()
                release.wait(timeout=5)
                return super().wait_and_read(request)

        engine = SlowEngine(lambda blob, batch: raw_output([[]]))
        try:
            stage = ObjectDetection(engine)
            stage.load_network(model)
            stage.enqueue(image(10, 10), BoundingBox(0, 0, 10, 10))
            stage.submit_request()

            fetcher = threading.Thread(target=stage.fetch_results)
            fetcher.start()
            assert started.wait(timeout=5)
            with pytest.raises(SequencingError):
                stage.submit_request()
            release.set()
            fetcher.join(timeout=5)
            assert stage.in_flight is False
        finally:
            release.set()
            engine.close()
