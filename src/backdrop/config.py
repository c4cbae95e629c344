from dataclasses import dataclass


@dataclass
class AppConfig:
    # --- Logging ---
    log_level: str = "INFO"  # Minimum log level to output
    log_file: str | None = None  # Redirect logs to a file instead of the console
    log_interval: float = 1.0  # Seconds between FPS / profiler log lines

    # --- Window ---
    window_title: str = "Backdrop"  # Preview window title prefix
    fullscreen: bool = False  # Open the preview on the primary monitor

    # --- Camera ---
    camera_index: int = 0  # Index of the camera to use (e.g., 0 for /dev/video0)
    width: int = 1280  # Capture width requested from the device
    height: int = 720  # Capture height requested from the device
    mirror: bool = True  # Flip frames horizontally so the preview acts as a mirror
    max_read_failures: int = 30  # Consecutive failed reads before the device is lost

    # --- Segmentation ---
    segmenter: str = "mediapipe"  # Segmentation backend ('mediapipe' or 'yolo')
    seg_width: int = 640  # Model input width (the mask comes back at this size)
    seg_height: int = 384  # Model input height
    yolo_model: str = "yolo11s-seg.pt"  # Path to the YOLO model file

    # --- Background ---
    background: str = "blur"  # Initial mode: blur, black, white, gradient, image
    background_image: str = "background.png"  # Asset for the custom image mode
    debug_mask: bool = False  # Start with the raw mask shown instead of the composite
