"""
kiosk_vision: commodity kiosk capture alignment and text extraction.

Normalizes screen captures of an in-game trading kiosk against a
reference template, reads them with the native OneOCR engine, and keeps
the best of several extraction pipelines.

Modules:
    alignment      ORB + RANSAC homography alignment to a template
    similarity     Feature-match density score between images
    orb_matcher    Blue-channel ORB extraction and Hamming matching
    recognition    Recognition bridge over the native engine
    native         ctypes structs, signatures and buffer scoping
    pipeline       Pipeline configurations and best-effort selection
    preprocessing  Image manipulations applied before recognition
    image_io       Disk round trip and template loading
    geometry       Rectangles, quads and located words
    errors         Exception taxonomy
"""

__version__ = "1.0.0"
