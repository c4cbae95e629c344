class BackdropError(RuntimeError):
    """Base class for every error raised by the capture/segment/composite loop."""


# --- Session-terminal: the pipeline stays offline ---
class PermissionDenied(BackdropError):
    pass


class DeviceUnavailable(BackdropError):
    pass


# --- Per-frame: logged and absorbed by the worker ---
class SegmentationFailure(BackdropError):
    pass


class SegmentationUnavailable(SegmentationFailure):
    """The segmentation backend or its model could not be created."""


class InferenceFailure(SegmentationFailure):
    """The backend raised (or returned nothing) while processing a frame."""


class SynthesisFailure(BackdropError):
    pass


class CompositingFailure(BackdropError):
    pass
