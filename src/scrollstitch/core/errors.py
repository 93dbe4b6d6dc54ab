"""
Job-level errors raised by the stitching pipeline
"""


class StitchError(RuntimeError):
    """Base class for fatal stitch job errors"""

    kind = "stitch_error"


class InsufficientInputError(StitchError, ValueError):
    """Fewer than two images (or kept video frames) to stitch"""

    kind = "insufficient_input"


class RenderFailureError(StitchError):
    """The output canvas could not be materialized"""

    kind = "render_failure"


class DecoderFailureError(StitchError):
    """The video could not be opened or yielded no frames"""

    kind = "decoder_failure"
