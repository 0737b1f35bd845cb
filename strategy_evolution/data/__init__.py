from .frames import bars_from_frame, bars_to_frame
from .sample import generate_sample_data

__all__ = ["bars_from_frame", "bars_to_frame", "generate_sample_data"]
