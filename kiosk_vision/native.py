"""
ctypes boundary to the native OneOCR recognition engine.

Everything that deals in raw memory lives here: the fixed-layout structs,
the function signatures, loading the library with its directory on the
DLL search path, and keeping pixel buffers alive across a native call.
The recognition bridge is the only consumer.

Status-returning engine functions return an int64 where 0 means success.
"""

import os
import sys
import ctypes
import logging
from contextlib import contextmanager
from typing import Iterator

import numpy as np

from .errors import NativeCallError, ResourceUnavailableError
from .preprocessing import to_bgra

logger = logging.getLogger(__name__)

ENGINE_DIR = os.path.abspath(os.environ.get("ONEOCR_DIR", os.path.join("bin", "oneocr")))
LIBRARY_PATH = os.path.join(ENGINE_DIR, "oneocr.dll")
MODEL_PATH = os.path.join(ENGINE_DIR, "oneocr.onemodel")

# Decryption key for the bundled model file
MODEL_KEY = 'kj)TGtrK>f]b[Piow.gU+nC@s""""""4'

# Img.t for 4-channel (BGRA) pixel data
IMAGE_TYPE_BGRA = 3
BYTES_PER_PIXEL = 4

DISABLE_MODEL_DELAY_LOAD = 0


class Img(ctypes.Structure):
    """
    Image descriptor handed to RunOcrPipeline.

    struct Img { int t; int col; int row; int unk; int64 step; int64 data_ptr; }
    """

    _pack_ = 1
    _fields_ = [
        ("t", ctypes.c_int32),
        ("col", ctypes.c_int32),
        ("row", ctypes.c_int32),
        ("unk", ctypes.c_int32),
        ("step", ctypes.c_int64),
        ("data_ptr", ctypes.c_int64),
    ]


class OcrBoundingBox(ctypes.Structure):
    """Four corners, clockwise from the top-left, as 32-bit floats."""

    _fields_ = [(name, ctypes.c_float)
                for name in ("x1", "y1", "x2", "y2", "x3", "y3", "x4", "y4")]


_handle = ctypes.c_void_p
_handle_out = ctypes.POINTER(ctypes.c_void_p)
_count_out = ctypes.POINTER(ctypes.c_int64)
_text_out = ctypes.POINTER(ctypes.c_char_p)
_box_out = ctypes.POINTER(ctypes.POINTER(OcrBoundingBox))

SIGNATURES = {
    "CreateOcrInitOptions": [_handle_out],
    "OcrInitOptionsSetUseModelDelayLoad": [_handle, ctypes.c_byte],
    "CreateOcrPipeline": [ctypes.c_char_p, ctypes.c_char_p, _handle, _handle_out],
    "CreateOcrProcessOptions": [_handle_out],
    "OcrProcessOptionsSetMaxRecognitionLineCount": [_handle, ctypes.c_int64],
    "RunOcrPipeline": [_handle, ctypes.POINTER(Img), _handle, _handle_out],
    "GetOcrLineCount": [_handle, _count_out],
    "GetOcrLine": [_handle, ctypes.c_int64, _handle_out],
    "GetOcrLineContent": [_handle, _text_out],
    "GetOcrLineBoundingBox": [_handle, _box_out],
    "GetOcrLineWordCount": [_handle, _count_out],
    "GetOcrWord": [_handle, ctypes.c_int64, _handle_out],
    "GetOcrWordContent": [_handle, _text_out],
    "GetOcrWordBoundingBox": [_handle, _box_out],
}

RELEASE_SIGNATURES = {
    "ReleaseOcrInitOptions": [_handle],
    "ReleaseOcrPipeline": [_handle],
    "ReleaseOcrProcessOptions": [_handle],
    "ReleaseOcrResult": [_handle],
}


def bind_library(lib):
    """Declare argument and return types on a loaded engine library."""
    for name, argtypes in SIGNATURES.items():
        function = getattr(lib, name)
        function.argtypes = argtypes
        function.restype = ctypes.c_int64
    for name, argtypes in RELEASE_SIGNATURES.items():
        function = getattr(lib, name)
        function.argtypes = argtypes
        function.restype = None
    return lib


@contextmanager
def dll_search_path(directory: str) -> Iterator[None]:
    """
    Put `directory` on the DLL search path for the duration of the block.

    Lets the engine resolve its sibling libraries while it is loaded. The
    previous search path is restored on exit, error or not. Only Windows
    has a mutable DLL search path; elsewhere this is a no-op.
    """
    if sys.platform != "win32" or not os.path.isdir(directory):
        yield
        return

    cookie = os.add_dll_directory(directory)
    try:
        yield
    finally:
        cookie.close()


def load_library(path: str = LIBRARY_PATH, directory: str = ENGINE_DIR):
    """
    Load and bind the engine library.

    Raises:
        ResourceUnavailableError: If the library cannot be loaded.
    """
    with dll_search_path(directory):
        try:
            lib = ctypes.CDLL(path)
        except OSError as e:
            raise ResourceUnavailableError(
                f"Could not load recognition engine from {path}") from e
    logger.debug(f"Loaded recognition engine from {path}")
    return bind_library(lib)


def check(function: str, status: int) -> None:
    """Raise NativeCallError unless `status` is 0."""
    if status != 0:
        raise NativeCallError(function, int(status))


def to_native_string(value: str) -> ctypes.Array:
    """NUL-terminated ASCII buffer owned by the returned object."""
    return ctypes.create_string_buffer(value.encode("ascii"))


def is_null(handle: ctypes.c_void_p) -> bool:
    return handle is None or not handle.value


@contextmanager
def native_image(image_np: np.ndarray) -> Iterator[Img]:
    """
    Describe an image as a native BGRA Img for the duration of the block.

    The BGRA copy backing `data_ptr` is a local of this generator, which
    stays suspended at the yield for the whole block; the pointer is valid
    until the block exits and must not be used after it.
    """
    pixels = to_bgra(image_np)
    height, width = pixels.shape[:2]
    img = Img(
        t=IMAGE_TYPE_BGRA,
        col=width,
        row=height,
        unk=0,
        step=width * BYTES_PER_PIXEL,
        data_ptr=pixels.ctypes.data,
    )
    yield img
