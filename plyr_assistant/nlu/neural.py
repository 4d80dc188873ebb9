"""
Optional neural intent classifier backed by an ONNX text-classification model.

The model takes a single string tensor and returns the intent label. It only
supplies the label; entities come from the rule-based extractor.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, Optional

import numpy as np

from plyr_assistant.nlu.base import ClassifierBackend, Intent, IntentResult

logger = logging.getLogger(__name__)


class NeuralClassifier(ClassifierBackend):
    """
    ONNX intent model wrapper.

    Usage:
        neural = NeuralClassifier("~/models/assistant_intent.onnx")
        if neural.probe():
            result = neural.classify("skip this one")
    """

    name = "neural"
    CONFIDENCE = 0.95

    def __init__(self, model_path: Optional[str | Path] = None, timeout_s: float = 0.5):
        """
        Args:
            model_path: Path to the .onnx intent model
            timeout_s: Maximum time to wait for one inference
        """
        self.model_path = Path(model_path).expanduser() if model_path else None
        self.timeout_s = timeout_s
        self._session = None
        self._input_name: str | None = None
        self._executor: ThreadPoolExecutor | None = None

    def load(self) -> None:
        """
        Load the model.

        Raises:
            ImportError: onnxruntime is not installed
            FileNotFoundError: the model file does not exist
        """
        try:
            import onnxruntime as ort
        except ImportError as e:
            raise ImportError(
                "onnxruntime not installed. Install with: pip install plyr-assistant[neural]"
            ) from e

        if self.model_path is None or not self.model_path.exists():
            raise FileNotFoundError(f"Intent model not found: {self.model_path}")

        options = ort.SessionOptions()
        options.log_severity_level = 3
        self._session = ort.InferenceSession(str(self.model_path), sess_options=options)
        self._input_name = self._session.get_inputs()[0].name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="intent-model")
        logger.info("Neural intent model loaded: %s", self.model_path)

    def probe(self) -> bool:
        """Try to load the model. Returns True when it is usable."""
        if self.model_path is None:
            return False
        try:
            self.load()
        except ImportError:
            logger.debug("onnxruntime not available, using rule-based NLU")
            return False
        except FileNotFoundError:
            logger.debug("Intent model %s not found, using rule-based NLU", self.model_path)
            return False
        except Exception as e:
            logger.info("Intent model failed to load (%s), using rule-based NLU", e)
            self.close()
            return False
        return True

    def is_loaded(self) -> bool:
        return self._session is not None

    def classify(self, text: str) -> IntentResult | None:
        """
        Run the model on an utterance.

        Returns None when the model gives a blank or unknown label.
        Raises on inference errors and on timeout.
        """
        if self._session is None or self._executor is None:
            return None

        future = self._executor.submit(self._run, text)
        try:
            label = future.result(timeout=self.timeout_s)
        except FutureTimeoutError:
            future.cancel()
            raise TimeoutError(f"Intent model took longer than {self.timeout_s:.2f}s")

        if not label or label in (Intent.NONE, Intent.UNKNOWN):
            return None
        if label not in Intent.ALL:
            logger.debug("Intent model returned unknown label %r", label)
            return None
        return IntentResult(label, self.CONFIDENCE)

    def _run(self, text: str) -> str | None:
        inputs = {self._input_name: np.array([text], dtype=object)}
        outputs = self._session.run(None, inputs)
        if not outputs:
            return None
        return self._decode_label(outputs[0])

    @staticmethod
    def _decode_label(value: Any) -> str | None:
        if isinstance(value, np.ndarray):
            if value.size == 0:
                return None
            value = value.reshape(-1)[0]
        elif isinstance(value, (list, tuple)):
            if not value:
                return None
            value = value[0]
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="ignore")
        if isinstance(value, str):
            return value.strip() or None
        return None

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
        self._executor = None
        self._session = None
        self._input_name = None
