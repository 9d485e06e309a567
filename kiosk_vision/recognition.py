"""
Recognition bridge: located words from the native OneOCR engine.

The bridge owns one engine pipeline for its whole lifetime. Each call
writes the image to disk, reloads it, submits it to the engine, walks the
result lines and words in engine order, and releases the per-call handles.

Lifecycle:
    UNINITIALIZED -> READY -> (RECOGNIZING -> READY)* -> DISPOSED

A failed initialization leaves the bridge DISPOSED. One recognition call
runs at a time; use one bridge per thread or pipeline for parallelism.
"""

import os
import ctypes
import logging
import threading
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from . import native
from .errors import BridgeStateError, ResourceUnavailableError
from .geometry import BoundingQuad, LocatedLine, LocatedWord
from .image_io import DiskImageWriter, reload_for_recognition

logger = logging.getLogger(__name__)

MAX_RECOGNITION_LINES = int(os.environ.get("ONEOCR_MAX_LINES", "1000"))


class BridgeState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    RECOGNIZING = "recognizing"
    DISPOSED = "disposed"


def _to_quad(box: native.OcrBoundingBox) -> BoundingQuad:
    return BoundingQuad(box.x1, box.y1, box.x2, box.y2,
                        box.x3, box.y3, box.x4, box.y4)


class RecognitionBridge:
    """
    Drives the native engine through its ctypes binding.

    Args:
        writer: Disk image writer; recognition requires a disk round trip
            and fails fast if the writer does not produce a file.
        library: A bound engine library. Loaded from ONEOCR_DIR if omitted.
        model_path: Engine model file.
        model_key: Model decryption key.
        max_lines: Cap on recognized lines per call.
    """

    def __init__(self, writer: DiskImageWriter,
                 library=None,
                 model_path: str = native.MODEL_PATH,
                 model_key: str = native.MODEL_KEY,
                 max_lines: int = MAX_RECOGNITION_LINES):
        self.writer = writer
        self.max_lines = max_lines
        self.state = BridgeState.UNINITIALIZED
        self._lock = threading.Lock()
        self._pipeline = ctypes.c_void_p()

        try:
            self._lib = library if library is not None else native.load_library()
            self._create_pipeline(model_path, model_key)
        except Exception:
            self.state = BridgeState.DISPOSED
            raise

        self.state = BridgeState.READY
        logger.info("Recognition bridge ready")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _create_pipeline(self, model_path: str, model_key: str) -> None:
        lib = self._lib
        init_options = ctypes.c_void_p()
        native.check("CreateOcrInitOptions",
                     lib.CreateOcrInitOptions(ctypes.pointer(init_options)))
        try:
            native.check("OcrInitOptionsSetUseModelDelayLoad",
                         lib.OcrInitOptionsSetUseModelDelayLoad(
                             init_options, native.DISABLE_MODEL_DELAY_LOAD))

            # Both buffers must outlive the call
            model = native.to_native_string(model_path)
            key = native.to_native_string(model_key)
            native.check("CreateOcrPipeline",
                         lib.CreateOcrPipeline(model, key, init_options,
                                               ctypes.pointer(self._pipeline)))
        finally:
            lib.ReleaseOcrInitOptions(init_options)

    def close(self) -> None:
        """Release the engine pipeline. Safe to call more than once."""
        with self._lock:
            if self.state is BridgeState.DISPOSED:
                return
            if not native.is_null(self._pipeline):
                self._lib.ReleaseOcrPipeline(self._pipeline)
                self._pipeline = ctypes.c_void_p()
            self.state = BridgeState.DISPOSED
        logger.debug("Recognition bridge disposed")

    def __enter__(self) -> "RecognitionBridge":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _begin(self) -> None:
        with self._lock:
            if self.state is not BridgeState.READY:
                raise BridgeStateError(
                    f"Cannot recognize while bridge is {self.state.value}")
            self.state = BridgeState.RECOGNIZING

    def _end(self) -> None:
        with self._lock:
            if self.state is BridgeState.RECOGNIZING:
                self.state = BridgeState.READY

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------

    def recognize(self, image: np.ndarray) -> List[LocatedWord]:
        """
        Recognize the words in an image.

        Only the word-level getters are called; line text and line boxes
        are never requested on this path.

        Returns:
            Located words in line-then-word order, lowercased. An image
            without text yields an empty list.

        Raises:
            ResourceUnavailableError: The image could not be written or reloaded.
            NativeCallError: Any engine call returned a non-zero status.
            BridgeStateError: The bridge is not READY.
        """
        lines = self._recognize(image, include_line_content=False)
        return [word for line in lines for word in line.words]

    def recognize_lines(self, image: np.ndarray) -> List[LocatedLine]:
        """Recognize an image and keep the engine's line grouping."""
        return self._recognize(image, include_line_content=True)

    def _recognize(self, image: np.ndarray,
                   include_line_content: bool) -> List[LocatedLine]:
        self._begin()
        try:
            pixels = self._round_trip(image)
            with native.native_image(pixels) as img:
                return self._run(img, include_line_content)
        finally:
            self._end()

    def _round_trip(self, image: np.ndarray) -> np.ndarray:
        path = self.writer.write(image, "screenshot")
        if path is None:
            raise ResourceUnavailableError(
                "Screenshot output is disabled; recognition requires the "
                "image to be written to disk")
        return reload_for_recognition(path)

    def _run(self, img: native.Img, include_line_content: bool) -> List[LocatedLine]:
        lib = self._lib
        options = ctypes.c_void_p()
        native.check("CreateOcrProcessOptions",
                     lib.CreateOcrProcessOptions(ctypes.pointer(options)))
        try:
            native.check("OcrProcessOptionsSetMaxRecognitionLineCount",
                         lib.OcrProcessOptionsSetMaxRecognitionLineCount(
                             options, self.max_lines))

            instance = ctypes.c_void_p()
            native.check("RunOcrPipeline",
                         lib.RunOcrPipeline(self._pipeline, ctypes.pointer(img),
                                            options, ctypes.pointer(instance)))
            try:
                return self._read_lines(instance, include_line_content)
            finally:
                lib.ReleaseOcrResult(instance)
        finally:
            lib.ReleaseOcrProcessOptions(options)

    def _read_lines(self, instance: ctypes.c_void_p,
                    include_line_content: bool) -> List[LocatedLine]:
        lib = self._lib
        count = ctypes.c_int64()
        native.check("GetOcrLineCount", lib.GetOcrLineCount(instance, ctypes.pointer(count)))

        lines = []
        for i in range(count.value):
            line = ctypes.c_void_p()
            native.check("GetOcrLine", lib.GetOcrLine(instance, i, ctypes.pointer(line)))
            if native.is_null(line):
                continue

            text, rectangle = "", None
            if include_line_content:
                text, quad = self._read_content(line, "GetOcrLineContent",
                                                "GetOcrLineBoundingBox")
                rectangle = quad.to_rectangle() if quad else None
            lines.append(LocatedLine(
                text=text,
                rectangle=rectangle,
                words=tuple(self._read_words(line)),
            ))

        logger.debug(f"Recognized {len(lines)} lines")
        return lines

    def _read_words(self, line: ctypes.c_void_p) -> List[LocatedWord]:
        lib = self._lib
        count = ctypes.c_int64()
        native.check("GetOcrLineWordCount",
                     lib.GetOcrLineWordCount(line, ctypes.pointer(count)))

        words = []
        for j in range(count.value):
            word = ctypes.c_void_p()
            native.check("GetOcrWord", lib.GetOcrWord(line, j, ctypes.pointer(word)))
            if native.is_null(word):
                continue

            text, quad = self._read_content(word, "GetOcrWordContent",
                                            "GetOcrWordBoundingBox")
            if quad is None:
                logger.debug(f"Skipping word without bounding box: {text!r}")
                continue
            words.append(LocatedWord(text, quad.to_rectangle()))
        return words

    def _read_content(self, handle: ctypes.c_void_p, content_fn: str,
                      box_fn: str) -> Tuple[str, Optional[BoundingQuad]]:
        text_ptr = ctypes.c_char_p()
        native.check(content_fn, getattr(self._lib, content_fn)(
            handle, ctypes.pointer(text_ptr)))
        # Malformed UTF-8 becomes U+FFFD
        text = (text_ptr.value or b"").decode("utf-8", errors="replace").lower()

        box_ptr = ctypes.POINTER(native.OcrBoundingBox)()
        native.check(box_fn, getattr(self._lib, box_fn)(handle, ctypes.pointer(box_ptr)))
        quad = _to_quad(box_ptr.contents) if box_ptr else None
        return text, quad
