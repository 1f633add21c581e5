"""
Exceptions raised by the torchbrief library.

Border proximity is not an error: keypoints whose patch would leave the image
are reported in ``DescriptorSet.skipped_indices`` instead.
"""


class BriefError(Exception):
    """Base class for all torchbrief errors."""


class ConfigurationError(BriefError, ValueError):
    """Invalid parameters, detected before any per-keypoint work starts."""


class InputMismatchError(BriefError, ValueError):
    """Inputs whose shapes do not agree, e.g. a patch too small for a pattern."""
