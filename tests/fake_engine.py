"""In-process stand-in for the native OneOCR library.

Exposes the same function names the ctypes binding declares. Output
parameters arrive as ctypes pointers and are written through index 0,
exactly where the native library writes.
"""

import ctypes

from kiosk_vision.native import OcrBoundingBox

PIPELINE = 1
INIT_OPTIONS = 2
PROCESS_OPTIONS = 3
INSTANCE = 4


def box(x1, y1, x3, y3):
    """Axis-aligned quad, clockwise from top-left."""
    return (x1, y1, x3, y1, x3, y3, x1, y3)


class FakeEngine:
    """
    Args:
        lines: List of lines; each line is None (null handle) or a tuple
            (text, quad, words) where words is a list of None or (text, quad).
        fail: Mapping of function name to the status code it returns.
        on_run: Called with no arguments from inside RunOcrPipeline.

    Text may be given as str (encoded as UTF-8) or as raw bytes.
    """

    def __init__(self, lines=(), fail=None, on_run=None):
        self.fail = dict(fail or {})
        self.on_run = on_run
        self.calls = []
        self.released = []
        self.images = []
        self.max_lines = None
        self.model = None
        self._lines = {}
        self._words = {}
        self._order = []
        self._boxes = []
        for i, line in enumerate(lines):
            handle = 100 + i
            self._order.append(handle if line is not None else None)
            if line is None:
                continue
            text, quad, words = line
            word_handles = []
            for j, word in enumerate(words):
                if word is None:
                    word_handles.append(None)
                    continue
                word_handle = handle * 1000 + j
                self._words[word_handle] = word
                word_handles.append(word_handle)
            self._lines[handle] = (text, quad, word_handles)

    def _status(self, name):
        self.calls.append(name)
        return self.fail.get(name, 0)

    def _write_text(self, out, text):
        out[0] = text if isinstance(text, bytes) else text.encode("utf-8")

    def _write_box(self, out, quad):
        struct = OcrBoundingBox(*quad)
        self._boxes.append(struct)
        out[0] = ctypes.pointer(struct)

    # Initialization

    def CreateOcrInitOptions(self, out):
        out[0] = INIT_OPTIONS
        return self._status("CreateOcrInitOptions")

    def OcrInitOptionsSetUseModelDelayLoad(self, ctx, flag):
        self.delay_load = flag
        return self._status("OcrInitOptionsSetUseModelDelayLoad")

    def CreateOcrPipeline(self, model, key, ctx, out):
        self.model = (model.value.decode("ascii"), key.value.decode("ascii"))
        status = self._status("CreateOcrPipeline")
        if status == 0:
            out[0] = PIPELINE
        return status

    def CreateOcrProcessOptions(self, out):
        out[0] = PROCESS_OPTIONS
        return self._status("CreateOcrProcessOptions")

    def OcrProcessOptionsSetMaxRecognitionLineCount(self, opt, count):
        self.max_lines = count
        return self._status("OcrProcessOptionsSetMaxRecognitionLineCount")

    # Recognition

    def RunOcrPipeline(self, pipeline, img, opt, out):
        desc = img.contents
        self.images.append((desc.t, desc.col, desc.row, desc.unk, desc.step,
                            desc.data_ptr != 0))
        if self.on_run is not None:
            self.on_run()
        status = self._status("RunOcrPipeline")
        if status == 0:
            out[0] = INSTANCE
        return status

    def GetOcrLineCount(self, instance, out):
        out[0] = len(self._order)
        return self._status("GetOcrLineCount")

    def GetOcrLine(self, instance, index, out):
        handle = self._order[index]
        if handle is not None:
            out[0] = handle
        return self._status("GetOcrLine")

    def GetOcrLineContent(self, line, out):
        self._write_text(out, self._lines[line.value][0])
        return self._status("GetOcrLineContent")

    def GetOcrLineBoundingBox(self, line, out):
        self._write_box(out, self._lines[line.value][1])
        return self._status("GetOcrLineBoundingBox")

    def GetOcrLineWordCount(self, line, out):
        out[0] = len(self._lines[line.value][2])
        return self._status("GetOcrLineWordCount")

    def GetOcrWord(self, line, index, out):
        handle = self._lines[line.value][2][index]
        if handle is not None:
            out[0] = handle
        return self._status("GetOcrWord")

    def GetOcrWordContent(self, word, out):
        self._write_text(out, self._words[word.value][0])
        return self._status("GetOcrWordContent")

    def GetOcrWordBoundingBox(self, word, out):
        self._write_box(out, self._words[word.value][1])
        return self._status("GetOcrWordBoundingBox")

    # Release

    def ReleaseOcrInitOptions(self, handle):
        self.released.append(("init_options", handle.value))

    def ReleaseOcrPipeline(self, handle):
        self.released.append(("pipeline", handle.value))

    def ReleaseOcrProcessOptions(self, handle):
        self.released.append(("process_options", handle.value))

    def ReleaseOcrResult(self, handle):
        self.released.append(("result", handle.value))
