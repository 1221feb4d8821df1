"""Document image preprocessing for OCR submission.

A deterministic pixel pipeline (grayscale, brightness, contrast and
sharpening) that decodes scanned images, enhances them in a fixed order,
and re-encodes them in their original container format.
"""
