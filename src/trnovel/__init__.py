"""Book-source rule engine and streaming chapter text-to-speech."""

__version__ = "0.1.0"

from .analyzer_manager import AnalyzerManager
from .audio_queue import AudioQueueInput, AudioQueueOutput, SamplesBuffer, Silence, audio_queue
from .book_source import BookSource, load_book_sources
from .book_source_parser import BookSourceParser
from .chapter_tts import ChapterTTS, PositionReceiver
from .downloader import Downloader
from .errors import (
    AnalyzerError,
    DecodeError,
    HttpError,
    InvalidRuleError,
    InvalidValueTypeError,
    RateLimitCancelledError,
    SynthError,
    TemplateRecursionError,
    TrnovelError,
    TtsInputError,
    TtsModelError,
    UnknownVariableError,
)
from .http_client import HttpClient
from .interfaces import (
    Analyzer,
    BookInfo,
    BookListItem,
    Chapter,
    ExploreItem,
    LocalNovel,
    NovelChapter,
    Synthesizer,
    TextSegment,
    TextSegmenter,
)
from .local_novel import EpubNovel, TxtNovel, open_novel
from .rate_limiter import TokenBucket
from .text_segmenter import PunctuationTextSegmenter, segment_text
from .tts_engine_kokoro_onnx import KokoroOnnxSynthesizer

__all__ = [
    "__version__",
    "Analyzer",
    "AnalyzerError",
    "AnalyzerManager",
    "AudioQueueInput",
    "AudioQueueOutput",
    "BookInfo",
    "BookListItem",
    "BookSource",
    "BookSourceParser",
    "Chapter",
    "ChapterTTS",
    "DecodeError",
    "Downloader",
    "EpubNovel",
    "ExploreItem",
    "HttpClient",
    "HttpError",
    "InvalidRuleError",
    "InvalidValueTypeError",
    "KokoroOnnxSynthesizer",
    "LocalNovel",
    "NovelChapter",
    "PositionReceiver",
    "PunctuationTextSegmenter",
    "RateLimitCancelledError",
    "SamplesBuffer",
    "Silence",
    "Synthesizer",
    "SynthError",
    "TemplateRecursionError",
    "TextSegment",
    "TextSegmenter",
    "TokenBucket",
    "TrnovelError",
    "TtsInputError",
    "TtsModelError",
    "TxtNovel",
    "UnknownVariableError",
    "audio_queue",
    "load_book_sources",
    "open_novel",
    "segment_text",
]
