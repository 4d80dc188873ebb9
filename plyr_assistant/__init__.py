"""
Plyr Assistant - voice-driven command assistant for a music player.
"""

import logging
import warnings

warnings.filterwarnings("ignore", category=FutureWarning)

# Suppress onnxruntime chatter when the neural classifier is probed
logging.getLogger("onnxruntime").setLevel(logging.ERROR)
logging.getLogger("httpx").setLevel(logging.WARNING)

__version__ = "0.1.0"

from plyr_assistant.nlu import IntentClassifier, IntentResult

__all__ = ["IntentClassifier", "IntentResult", "__version__"]
