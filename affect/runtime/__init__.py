"""Runtime pieces: inference job client, fallback synthesis and the capture pipeline."""

from .client import InferenceJobClient, PollTimeoutError, SubmissionError
from .fallback import FallbackSynthesizer, synthesize
from .payload import NoFaceDetected, SchemaError
from .pipeline import AffectPipeline

__all__ = [
    "AffectPipeline",
    "FallbackSynthesizer",
    "InferenceJobClient",
    "NoFaceDetected",
    "PollTimeoutError",
    "SchemaError",
    "SubmissionError",
    "synthesize",
]
