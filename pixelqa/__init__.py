"""PixelQA: design-vs-implementation visual QA backed by a vision model."""

__version__ = "1.0.0"
