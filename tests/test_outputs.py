"""
Tests for output sinks.
"""

import logging
from unittest.mock import patch

import numpy as np

from roi_inference.models.detection import BoundingBox, ObjectDetectionResult, Result
from roi_inference.outputs.image_window import COLOR_BOX, ImageWindowOutput
from roi_inference.outputs.log_output import LoggingOutput


def detection(x1, y1, x2, y2, label="person", conf=0.9):
    return ObjectDetectionResult(location=BoundingBox(x1, y1, x2, y2), label=label, confidence=conf, class_id=1)


class TestImageWindowOutput:
    def test_draws_on_copy_of_frame(self):
        frame = np.zeros((200, 200, 3), dtype=np.uint8)
        output = ImageWindowOutput(show=False)
        output.feed_frame(frame)
        output.accept((detection(50, 60, 150, 160),))

        assert frame.sum() == 0
        assert tuple(output.annotated[160, 100]) == COLOR_BOX
        assert output.handle_output() is True

    def test_plain_result_gets_box_only(self):
        output = ImageWindowOutput(show=False)
        output.feed_frame(np.zeros((100, 100, 3), dtype=np.uint8))
        output.accept((Result(location=BoundingBox(10, 10, 90, 90)),))
        assert tuple(output.annotated[90, 50]) == COLOR_BOX

    def test_accept_without_frame_is_ignored(self):
        output = ImageWindowOutput(show=False)
        output.accept((detection(0, 0, 10, 10),))
        assert output.annotated is None

    def test_show_quits_on_q(self):
        output = ImageWindowOutput(show=True)
        output.feed_frame(np.zeros((10, 10, 3), dtype=np.uint8))
        with patch("roi_inference.outputs.image_window.cv2.imshow") as imshow, \
                patch("roi_inference.outputs.image_window.cv2.waitKey", return_value=ord("q")):
            assert output.handle_output() is False
        imshow.assert_called_once()


class TestLoggingOutput:
    def test_logs_each_result(self, caplog):
        output = LoggingOutput()
        with caplog.at_level(logging.INFO):
            output.accept((detection(10, 10, 50, 50, label="car", conf=0.75), detection(0, 0, 5, 5)))

        assert output.count == 2
        assert "car conf=0.750 box=(10,10)-(50,50)" in caplog.text
        assert "person" in caplog.text
