from cognipath.services.decomposition.decoder import decode_chunks
from cognipath.services.decomposition.extractor import extract_pdf_text
from cognipath.services.decomposition.prompt import build_decomposition_prompt
from cognipath.services.decomposition.types import Chunk, GeneratedPath, SourceDocument

__all__ = [
    "Chunk",
    "GeneratedPath",
    "SourceDocument",
    "build_decomposition_prompt",
    "decode_chunks",
    "extract_pdf_text",
]
