"""Modality engine: decides how a result is presented.

- Simple answer: voice only
- Complex result: voice highlights plus a markdown document, auto-opened
- Code or data: document plus a brief voice announcement
- Error: voice, the user needs to make a decision

Document locations:
- Research and docs go to ~/Desktop
- Code goes to the project folder, or ~/Desktop without one
- Data exports go to ~/Downloads
- Logs go to ~/.jack/logs/ and are not auto-opened
"""
from typing import Literal, Optional, Union
from pathlib import Path
from pydantic import BaseModel
from enum import Enum
import os

from jack.domain.models import ExecutionResult


class ContentType(str, Enum):
    """Content type hints for modality decisions"""
    SIMPLE_ANSWER = "simple_answer"
    COMPLEX_RESULT = "complex_result"
    CODE = "code"
    DATA = "data"
    ERROR = "error"


SIMPLE_ANSWER_ACTIONS = frozenset({"get_time", "get_date", "get_weather", "simple_math"})
CODE_ACTIONS = frozenset({"generate_code", "write_code"})
DATA_ACTIONS = frozenset({"export_data", "generate_logs", "export_csv"})


def infer_content_type(action: str) -> ContentType:
    """Fixed lookup from action name to content type"""
    if action in SIMPLE_ANSWER_ACTIONS:
        return ContentType.SIMPLE_ANSWER
    if action in CODE_ACTIONS:
        return ContentType.CODE
    if action in DATA_ACTIONS:
        return ContentType.DATA
    return ContentType.COMPLEX_RESULT


class ModalityContext(BaseModel):
    project_path: Optional[str] = None
    is_log: bool = False


class ModalityDecision(BaseModel):
    """Output channels chosen for a result"""
    voice: bool
    document: bool
    document_type: Optional[Literal["markdown", "code", "data"]] = None
    document_location: Optional[str] = None
    auto_open: bool = False
    highlights: Optional[str] = None


class ModalityEngine:
    """Stateless presentation decisions"""

    def __init__(self, home_dir: Optional[str] = None):
        self.home_dir = home_dir or str(Path.home())

    def decide(
        self,
        result: ExecutionResult,
        content_type: Union[ContentType, str],
        context: Optional[ModalityContext] = None
    ) -> ModalityDecision:
        """Decide how to present a result"""

        try:
            content_type = ContentType(content_type)
        except ValueError:
            # Unknown hints fall back to voice only
            return ModalityDecision(voice=True, document=False, auto_open=False)

        if content_type is ContentType.COMPLEX_RESULT:
            return self._decide_complex_result(result)
        if content_type is ContentType.CODE:
            return self._decide_code(context)
        if content_type is ContentType.DATA:
            return self._decide_data(context)

        # Simple answers and errors are spoken
        return ModalityDecision(voice=True, document=False, auto_open=False)

    def _decide_complex_result(self, result: ExecutionResult) -> ModalityDecision:
        return ModalityDecision(
            voice=True,
            document=True,
            document_type="markdown",
            document_location=os.path.join(self.home_dir, "Desktop"),
            auto_open=True,
            highlights=self.generate_highlights(result)
        )

    def _decide_code(self, context: Optional[ModalityContext]) -> ModalityDecision:
        location = (context.project_path if context else None) or os.path.join(self.home_dir, "Desktop")

        return ModalityDecision(
            voice=True,
            document=True,
            document_type="code",
            document_location=location,
            auto_open=True,
            highlights="Code generated and saved."
        )

    def _decide_data(self, context: Optional[ModalityContext]) -> ModalityDecision:
        is_log = context.is_log if context else False
        if is_log:
            location = os.path.join(self.home_dir, ".jack", "logs")
        else:
            location = os.path.join(self.home_dir, "Downloads")

        return ModalityDecision(
            voice=True,
            document=True,
            document_type="data",
            document_location=location,
            auto_open=not is_log,
            highlights="Logs saved." if is_log else "Data exported."
        )

    @staticmethod
    def generate_highlights(result: ExecutionResult) -> str:
        """Short voice summary for a result that also gets a document"""

        data = result.data
        if data is None:
            return "Result ready."

        if isinstance(data, dict):
            if isinstance(data.get("summary"), str):
                return data["summary"]
            if isinstance(data.get("recommendation"), str):
                return data["recommendation"]

        return "Full details in the document."
