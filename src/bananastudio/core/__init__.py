"""Core functionality for Banana Studio.

- **config**: Configuration management using Pydantic Settings
- **errors**: Exception taxonomy rendered as JSON error bodies
- **credentials**: File-backed API key storage and resolution
- **storage**: Image directory with public URLs and retention
- **references**: Parsing of reference image encodings
- **prompt_adapter**: Prompt + references → Gemini request body
- **gemini_client**: HTTP transport to ``generateContent``
- **response_normalizer**: Gemini response → stored images
- **orchestrator**: One generation, end to end

Architecture Overview
---------------------
The request path is a straight line with no shared mutable state other than
the credential file and the image directory::

    GenerateRequest
        → resolve_credential
        → GenerationOrchestrator.generate
            → build_request            (pure)
            → GeminiClient.generate_content  (one HTTP call, no retry)
            → ResponseNormalizer.normalize   (writes files)
"""

from bananastudio.core.config import StudioConfig, config
from bananastudio.core.errors import StudioError
from bananastudio.core.orchestrator import GenerationOrchestrator, GenerationResult
from bananastudio.core.prompt_adapter import GenerationSettings, build_request
from bananastudio.core.response_normalizer import GeneratedImage, OutcomeClassification

__all__ = [
    "GeneratedImage",
    "GenerationOrchestrator",
    "GenerationResult",
    "GenerationSettings",
    "OutcomeClassification",
    "StudioConfig",
    "StudioError",
    "build_request",
    "config",
]
