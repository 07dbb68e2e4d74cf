"""Generation pipeline: round orchestration, prompts and code extraction."""

from .code_extractor import CodeExtractor, ExtractedCode, contains_p5_code, extract_code
from .code_generator import CodeGenerator
from .orchestrator import RoundOrchestrator
from .round_coordinator import Round, RoundConfig, RoundCoordinator

__all__ = [
    "CodeExtractor",
    "ExtractedCode",
    "extract_code",
    "contains_p5_code",
    "CodeGenerator",
    "RoundOrchestrator",
    "Round",
    "RoundConfig",
    "RoundCoordinator",
]
