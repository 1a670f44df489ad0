"""
Cloud Speech-to-Text (v1), synchronous and long running recognition.
https://cloud.google.com/speech-to-text/docs/reference/rest/v1/speech

    audio = audio("gs://bucket/meeting.flac", encoding="FLAC", sample_rate=16000, language="en-US")
    for result in recognize(audio, phrases=["Cloud Speech"]):
        print(result.transcript, result.confidence)

    op = process(audio)          # for audio over a minute
    results = op.wait_until_done().results()
"""
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import List, Self
import base64
import logging
import time

from .access import gcp, execute
from .errors import from_status
from .resources import compact

logger = logging.getLogger(__name__)

_get_service = partial(gcp.require_service, "speech", "v1")

ENCODINGS = ("LINEAR16", "FLAC", "MULAW", "AMR", "AMR_WB", "OGG_OPUS",
             "SPEEX_WITH_HEADER_BYTE", "MP3", "WEBM_OPUS", "ENCODING_UNSPECIFIED")


class Audio():
    """
    Audio to recognize, from bytes, a local path, a file-like object or a
    gs:// URL.  encoding, sample_rate and language describe it for the API.
    """

    def __init__(self, source, encoding: str|None = None, sample_rate: int|None = None,
                 language: str|None = None) -> None:
        self.content: bytes|None = None
        self.url: str|None = None
        if isinstance(source, (bytes, bytearray)):
            self.content = bytes(source)
        elif hasattr(source, "read"):
            self.content = source.read()
        elif isinstance(source, str) and source.startswith("gs://"):
            self.url = source
        else:
            path = Path(source)
            if not path.is_file():
                raise FileNotFoundError(f"No audio at {source}")
            self.content = path.read_bytes()
        if encoding is not None and str(encoding).upper() not in ENCODINGS:
            raise ValueError(f"Invalid audio encoding: {encoding}")
        self.encoding = None if encoding is None else str(encoding).upper()
        self.sample_rate = sample_rate
        self.language = language

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{self.url or f'{len(self.content)} bytes'}:{self.encoding}"

    def to_base(self) -> dict:
        if self.url is not None:
            return {"uri": self.url}
        return {"content": base64.b64encode(self.content).decode("ascii")}

    def recognize(self, **kwargs) -> List["Result"]:
        return recognize(self, **kwargs)

    def process(self, **kwargs) -> "Operation":
        return process(self, **kwargs)


def audio(source, encoding: str|None = None, sample_rate: int|None = None,
          language: str|None = None) -> Audio:
    return Audio(source, encoding, sample_rate, language)


@dataclass
class Alternative():
    transcript: str = field(default="")
    confidence: float|None = field(default=None)
    words: List[dict] = field(default_factory=list)

    def __str__(self) -> str:
        return self.transcript


@dataclass
class Result():
    """
    One stretch of recognized speech.  transcript/confidence are for the
    most likely alternative, alternatives holds the rest.
    """
    transcript: str = field(default="")
    confidence: float|None = field(default=None)
    words: List[dict] = field(default_factory=list)
    alternatives: List[Alternative] = field(default_factory=list)
    language_code: str|None = field(default=None)

    def __str__(self) -> str:
        return self.transcript

    @classmethod
    def from_base(cls, base: dict) -> Self:
        alts = [Alternative(a.get("transcript", ""), a.get("confidence"), a.get("words", []))
                for a in base.get("alternatives", [])]
        best = alts[0] if alts else Alternative()
        return cls(best.transcript, best.confidence, best.words, alts[1:], base.get("languageCode"))


def _request(audio: Audio, encoding: str|None, sample_rate: int|None, language: str|None,
             max_alternatives: int|None, profanity_filter: bool|None,
             phrases: List[str]|None, words: bool|None) -> dict:
    language = language or audio.language
    if not language:
        raise ValueError("A language code (e.g. en-US) is required")
    config = compact({
        "encoding": encoding or audio.encoding,
        "sampleRateHertz": sample_rate or audio.sample_rate,
        "languageCode": language,
        "maxAlternatives": max_alternatives,
        "profanityFilter": profanity_filter,
        "speechContexts": [{"phrases": list(phrases)}] if phrases else None,
        "enableWordTimeOffsets": words,
    })
    return {"config": config, "audio": audio.to_base()}


def recognize(audio: Audio|str|bytes, encoding: str|None = None, sample_rate: int|None = None,
              language: str|None = None, max_alternatives: int|None = None,
              profanity_filter: bool|None = None, phrases: List[str]|None = None,
              words: bool|None = None) -> List[Result]:
    """
    https://cloud.google.com/speech-to-text/docs/reference/rest/v1/speech/recognize
    Blocks until done, for audio up to about a minute.  phrases are hints for
    words likely to be said, words asks for per-word time offsets.
    """
    a = audio if isinstance(audio, Audio) else Audio(audio)
    body = _request(a, encoding, sample_rate, language, max_alternatives, profanity_filter, phrases, words)
    response = execute(_get_service().speech().recognize(body=body)) or {}
    return [Result.from_base(r) for r in response.get("results", [])]


def process(audio: Audio|str|bytes, encoding: str|None = None, sample_rate: int|None = None,
            language: str|None = None, max_alternatives: int|None = None,
            profanity_filter: bool|None = None, phrases: List[str]|None = None,
            words: bool|None = None) -> "Operation":
    """
    https://cloud.google.com/speech-to-text/docs/reference/rest/v1/speech/longrunningrecognize
    Starts recognition and returns the Operation to poll for the results.
    """
    a = audio if isinstance(audio, Audio) else Audio(audio)
    body = _request(a, encoding, sample_rate, language, max_alternatives, profanity_filter, phrases, words)
    return Operation.from_base(execute(_get_service().speech().longrunningrecognize(body=body)))

long_running_recognize = process


@dataclass
class Operation():
    """https://cloud.google.com/speech-to-text/docs/reference/rest/v1/operations"""
    name: str|None = field(default=None)
    is_done: bool = field(default=False)
    metadata: dict|None = field(default=None)
    response: dict|None = field(default=None)
    error: dict|None = field(default=None)

    def __str__(self) -> str:
        return f"{self.name}:{'done' if self.is_done else 'running'}"

    @property
    def id(self) -> str|None:
        return self.name

    @property
    def progress(self) -> int|None:
        return (self.metadata or {}).get("progressPercent")

    @classmethod
    def from_base(cls, base: dict|None) -> Self:
        base = base or {}
        return cls(base.get("name"), bool(base.get("done", False)), base.get("metadata"),
                   base.get("response"), base.get("error"))

    def done(self) -> bool:
        return self.is_done

    def failed(self) -> bool:
        return self.is_done and self.error is not None

    def reload(self) -> Self:
        fresh = Operation.from_base(execute(_get_service().operations().get(name=self.name)))
        self.is_done, self.metadata = fresh.is_done, fresh.metadata
        self.response, self.error = fresh.response, fresh.error
        return self

    def results(self) -> List[Result]|None:
        """None while still running, raises the operation's error if it failed."""
        if not self.is_done:
            return None
        if self.error is not None:
            raise from_status(self.error)
        return [Result.from_base(r) for r in (self.response or {}).get("results", [])]

    def wait_until_done(self, timeout: float|None = None, max_delay: float = 60.0) -> Self:
        delay = 1.0
        start = time.monotonic()
        while not self.done():
            if timeout is not None and time.monotonic() - start >= timeout:
                raise TimeoutError(f"Speech operation {self.name} not done after {timeout}s")
            time.sleep(delay)
            delay = min(delay * 2, max_delay)
            self.reload()
            logger.debug("operation %s progress %s", self.name, self.progress)
        return self
