"""
Natural Language: sentiment, entities and syntax of a piece of text.
https://cloud.google.com/natural-language/docs/reference/rest/v1/documents

    doc = language.document("Star Wars is a great movie. The Death Star is fearsome.")
    annotation = doc.annotate()
    annotation.sentiment.score
    [e.name for e in annotation.entities]
"""
from dataclasses import dataclass, field
from functools import partial
from typing import List, Self

from .access import gcp, execute
from .resources import GoogleCloudResourceBase, compact

_get_service = partial(gcp.require_service, "language", "v1")

DOCUMENT_TYPES = ["PLAIN_TEXT", "HTML"]
ENCODING = "UTF8"


@dataclass
class Sentiment(GoogleCloudResourceBase):
    """score is -1.0 (negative) to 1.0 (positive), magnitude is how strongly, unbounded."""
    score: float = field(default=0.0)
    magnitude: float = field(default=0.0)

    def __str__(self) -> str:
        return f"score={self.score} magnitude={self.magnitude}"


def _sentiment(base: dict|None) -> Sentiment|None:
    return None if base is None else Sentiment.from_base(base)


@dataclass
class Sentence():
    content: str|None = field(default=None)
    offset: int|None = field(default=None)
    sentiment: Sentiment|None = field(default=None)

    def __str__(self) -> str:
        return self.content or ""

    @classmethod
    def from_base(cls, base: dict) -> Self:
        text = base.get("text", {})
        return cls(text.get("content"), text.get("beginOffset"), _sentiment(base.get("sentiment")))


@dataclass
class Token():
    content: str|None = field(default=None)
    offset: int|None = field(default=None)
    part_of_speech: str|None = field(default=None)
    head_token_index: int|None = field(default=None)
    label: str|None = field(default=None)
    lemma: str|None = field(default=None)

    def __str__(self) -> str:
        return self.content or ""

    @classmethod
    def from_base(cls, base: dict) -> Self:
        text = base.get("text", {})
        edge = base.get("dependencyEdge", {})
        return cls(text.get("content"), text.get("beginOffset"),
                   base.get("partOfSpeech", {}).get("tag"),
                   edge.get("headTokenIndex"), edge.get("label"), base.get("lemma"))


@dataclass
class Entity(GoogleCloudResourceBase):
    """
    https://cloud.google.com/natural-language/docs/reference/rest/v1/Entity
    type is PERSON, LOCATION, ORGANIZATION, EVENT, WORK_OF_ART ...
    """
    name: str|None = field(default=None)
    type: str|None = field(default=None)
    metadata: dict = field(default_factory=dict)
    salience: float = field(default=0.0)
    mentions: List[dict] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.name} ({self.type})"

    @property
    def wikipedia_url(self) -> str|None:
        return self.metadata.get("wikipedia_url")

    @property
    def mid(self) -> str|None:
        return self.metadata.get("mid")

    @property
    def mention_texts(self) -> List[str]:
        return [m.get("text", {}).get("content") for m in self.mentions]


@dataclass
class Annotation():
    sentiment: Sentiment|None = field(default=None)
    entities: List[Entity] = field(default_factory=list)
    sentences: List[Sentence] = field(default_factory=list)
    tokens: List[Token] = field(default_factory=list)
    language: str|None = field(default=None)

    @classmethod
    def from_base(cls, base: dict|None) -> Self:
        base = base or {}
        return cls(_sentiment(base.get("documentSentiment")),
                   [Entity.from_base(e) for e in base.get("entities", [])],
                   [Sentence.from_base(s) for s in base.get("sentences", [])],
                   [Token.from_base(t) for t in base.get("tokens", [])],
                   base.get("language"))


class Document():
    """
    Text to analyze, either inline content or a gs:// url to a file in Cloud Storage.
    Nothing is sent until one of the analysis methods is called.
    """
    def __init__(self, content: str, type: str = "PLAIN_TEXT", language: str|None = None) -> None:
        t = str(type).upper()
        if t == "TEXT":
            t = "PLAIN_TEXT"
        if t not in DOCUMENT_TYPES:
            raise ValueError(f"Invalid document type: {type}")
        self.content = content
        self.type = t
        self.language = language

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.type}, {self.content[:40]!r})"

    def is_url(self) -> bool:
        return str(self.content).startswith("gs://")

    def to_base(self) -> dict:
        source = {"gcsContentUri": self.content} if self.is_url() else {"content": self.content}
        return compact({"type": self.type, "language": self.language, **source})

    def _body(self, **extra) -> dict:
        return {"document": self.to_base(), "encodingType": ENCODING, **extra}

    def annotate(self, sentiment: bool = False, entities: bool = False, syntax: bool = False) -> Annotation:
        """
        https://cloud.google.com/natural-language/docs/reference/rest/v1/documents/annotateText
        With no features asked for, all three are.
        """
        if not (sentiment or entities or syntax):
            sentiment = entities = syntax = True
        features = {"extractSyntax": syntax, "extractEntities": entities,
                    "extractDocumentSentiment": sentiment}
        gapi = execute(_get_service().documents().annotateText(body=self._body(features=features)))
        return Annotation.from_base(gapi)

    def entities(self) -> List[Entity]:
        gapi = execute(_get_service().documents().analyzeEntities(body=self._body())) or {}
        return [Entity.from_base(e) for e in gapi.get("entities", [])]

    def sentiment(self) -> Sentiment|None:
        gapi = execute(_get_service().documents().analyzeSentiment(body=self._body())) or {}
        return _sentiment(gapi.get("documentSentiment"))

    def syntax(self) -> Annotation:
        """Sentences and tokens."""
        return Annotation.from_base(execute(_get_service().documents().analyzeSyntax(body=self._body())))


def document(content: str, type: str = "PLAIN_TEXT", language: str|None = None) -> Document:
    return Document(content, type, language)


def text(content: str, language: str|None = None) -> Document:
    return Document(content, "PLAIN_TEXT", language)


def html(content: str, language: str|None = None) -> Document:
    return Document(content, "HTML", language)
