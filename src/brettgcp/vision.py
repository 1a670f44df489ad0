"""
Cloud Vision image annotation.
https://cloud.google.com/vision/docs/reference/rest/v1/images/annotate

    img = image("path/to/landmark.jpg")
    for landmark in img.landmarks():
        print(landmark.description, landmark.score)

    # several features and images in one request
    a1, a2 = annotate(image("a.jpg"), image("gs://bucket/b.png"), faces=5, labels=10)
"""
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import List, Self
import base64

from .access import gcp, execute
from .errors import from_status
from .resources import GoogleCloudResourceBase

_get_service = partial(gcp.require_service, "vision", "v1")

LIKELY = ("LIKELY", "VERY_LIKELY")


class Image():
    """
    An image to annotate, from bytes, a local path, a file-like object or a
    gs:// / http(s) URL which Vision fetches itself.
    """

    def __init__(self, source) -> None:
        self.content: bytes|None = None
        self.url: str|None = None
        if isinstance(source, (bytes, bytearray)):
            self.content = bytes(source)
        elif hasattr(source, "read"):
            self.content = source.read()
        elif isinstance(source, str) and source.startswith(("gs://", "http://", "https://")):
            self.url = source
        else:
            path = Path(source)
            if not path.is_file():
                raise FileNotFoundError(f"No image at {source}")
            self.content = path.read_bytes()

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{self.url or f'{len(self.content)} bytes'}"

    def is_url(self) -> bool:
        return self.url is not None

    def to_base(self) -> dict:
        if self.url is not None:
            return {"source": {"imageUri": self.url}}
        return {"content": base64.b64encode(self.content).decode("ascii")}

    def annotate(self, **features) -> "Annotation":
        return annotate(self, **features)

    def faces(self, max: int = 10) -> List["Face"]:
        return self.annotate(faces=max).faces

    def face(self) -> "Face|None":
        faces = self.faces(1)
        return faces[0] if faces else None

    def landmarks(self, max: int = 10) -> List["Landmark"]:
        return self.annotate(landmarks=max).landmarks

    def landmark(self) -> "Landmark|None":
        found = self.landmarks(1)
        return found[0] if found else None

    def logos(self, max: int = 10) -> List["Logo"]:
        return self.annotate(logos=max).logos

    def logo(self) -> "Logo|None":
        found = self.logos(1)
        return found[0] if found else None

    def labels(self, max: int = 10) -> List["Label"]:
        return self.annotate(labels=max).labels

    def label(self) -> "Label|None":
        found = self.labels(1)
        return found[0] if found else None

    def text(self) -> "Text|None":
        return self.annotate(text=True).text

    def safe_search(self) -> "SafeSearch|None":
        return self.annotate(safe_search=True).safe_search

    def properties(self) -> "Properties|None":
        return self.annotate(properties=True).properties


def image(source) -> Image:
    return Image(source)


def _vertices(poly: dict|None) -> List[tuple]:
    return [(v.get("x", 0), v.get("y", 0)) for v in (poly or {}).get("vertices", [])]


@dataclass
class EntityAnnotation(GoogleCloudResourceBase):
    """https://cloud.google.com/vision/docs/reference/rest/v1/AnnotateImageResponse#EntityAnnotation"""
    mid: str|None = field(default=None)
    locale: str|None = field(default=None)
    description: str|None = field(default=None)
    score: float|None = field(default=None)
    confidence: float|None = field(default=None)
    topicality: float|None = field(default=None)
    boundingPoly: dict|None = field(default=None)
    locations: List[dict] = field(default_factory=list)
    properties: List[dict] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.description)

    def __str__(self) -> str:
        return f"{self.description}:{self.score}"

    @property
    def bounds(self) -> List[tuple]:
        return _vertices(self.boundingPoly)


class Label(EntityAnnotation):
    pass


class Logo(EntityAnnotation):
    pass


class Landmark(EntityAnnotation):

    @property
    def lat_lngs(self) -> List[tuple]:
        """(latitude, longitude) of each location."""
        return [(l.get("latLng", {}).get("latitude"), l.get("latLng", {}).get("longitude"))
                for l in self.locations]


@dataclass
class Face(GoogleCloudResourceBase):
    """https://cloud.google.com/vision/docs/reference/rest/v1/AnnotateImageResponse#FaceAnnotation"""
    boundingPoly: dict|None = field(default=None)
    fdBoundingPoly: dict|None = field(default=None)
    landmarks: List[dict] = field(default_factory=list)
    rollAngle: float|None = field(default=None)
    panAngle: float|None = field(default=None)
    tiltAngle: float|None = field(default=None)
    detectionConfidence: float|None = field(default=None)
    landmarkingConfidence: float|None = field(default=None)
    joyLikelihood: str|None = field(default=None)
    sorrowLikelihood: str|None = field(default=None)
    angerLikelihood: str|None = field(default=None)
    surpriseLikelihood: str|None = field(default=None)
    underExposedLikelihood: str|None = field(default=None)
    blurredLikelihood: str|None = field(default=None)
    headwearLikelihood: str|None = field(default=None)

    def __bool__(self) -> bool:
        return self.boundingPoly is not None

    @property
    def bounds(self) -> List[tuple]:
        return _vertices(self.boundingPoly)

    @property
    def confidence(self) -> float|None:
        return self.detectionConfidence

    def landmark(self, type: str) -> tuple|None:
        """(x, y, z) of a facial landmark such as LEFT_EYE or NOSE_TIP."""
        for l in self.landmarks:
            if l.get("type") == str(type).upper():
                p = l.get("position", {})
                return (p.get("x"), p.get("y"), p.get("z"))
        return None

    def is_joy(self) -> bool:
        return self.joyLikelihood in LIKELY

    def is_sorrow(self) -> bool:
        return self.sorrowLikelihood in LIKELY

    def is_anger(self) -> bool:
        return self.angerLikelihood in LIKELY

    def is_surprise(self) -> bool:
        return self.surpriseLikelihood in LIKELY

    def is_under_exposed(self) -> bool:
        return self.underExposedLikelihood in LIKELY

    def is_blurred(self) -> bool:
        return self.blurredLikelihood in LIKELY

    def is_headwear(self) -> bool:
        return self.headwearLikelihood in LIKELY


@dataclass
class Text():
    """
    Text found in the image: the whole of it with its locale, plus each word
    with its bounds.
    """
    text: str
    locale: str|None = field(default=None)
    bounds: List[tuple] = field(default_factory=list)
    words: List[Self] = field(default_factory=list)

    def __str__(self) -> str:
        return self.text

    @classmethod
    def from_annotations(cls, annotations: List[dict]) -> Self|None:
        """The first textAnnotation is the full text, the rest are words."""
        if not annotations:
            return None
        full = annotations[0]
        words = [cls(a.get("description", ""), a.get("locale"), _vertices(a.get("boundingPoly")))
                 for a in annotations[1:]]
        return cls(full.get("description", ""), full.get("locale"), _vertices(full.get("boundingPoly")), words)


@dataclass
class SafeSearch(GoogleCloudResourceBase):
    """https://cloud.google.com/vision/docs/reference/rest/v1/AnnotateImageResponse#SafeSearchAnnotation"""
    adult: str|None = field(default=None)
    spoof: str|None = field(default=None)
    medical: str|None = field(default=None)
    violence: str|None = field(default=None)
    racy: str|None = field(default=None)

    def is_adult(self) -> bool:
        return self.adult in LIKELY

    def is_spoof(self) -> bool:
        return self.spoof in LIKELY

    def is_medical(self) -> bool:
        return self.medical in LIKELY

    def is_violence(self) -> bool:
        return self.violence in LIKELY

    def is_racy(self) -> bool:
        return self.racy in LIKELY


@dataclass
class Color():
    red: int = field(default=0)
    green: int = field(default=0)
    blue: int = field(default=0)
    alpha: float|None = field(default=None)
    score: float|None = field(default=None)
    pixel_fraction: float|None = field(default=None)

    @property
    def rgb(self) -> str:
        return f"{self.red:02x}{self.green:02x}{self.blue:02x}"

    @classmethod
    def from_base(cls, base: dict) -> Self:
        c = base.get("color", {})
        alpha = c.get("alpha")
        return cls(int(c.get("red", 0)), int(c.get("green", 0)), int(c.get("blue", 0)),
                   alpha if alpha is None else float(alpha),
                   base.get("score"), base.get("pixelFraction"))


@dataclass
class Properties():
    """Dominant colors of the image, most prominent first."""
    colors: List[Color] = field(default_factory=list)

    @classmethod
    def from_base(cls, base: dict) -> Self:
        colors = [Color.from_base(c) for c in base.get("dominantColors", {}).get("colors", [])]
        return cls(colors)


@dataclass
class Annotation():
    """Everything Vision found for one image, for the features that were asked for."""
    faces: List[Face] = field(default_factory=list)
    landmarks: List[Landmark] = field(default_factory=list)
    logos: List[Logo] = field(default_factory=list)
    labels: List[Label] = field(default_factory=list)
    text: Text|None = field(default=None)
    safe_search: SafeSearch|None = field(default=None)
    properties: Properties|None = field(default=None)

    @classmethod
    def from_base(cls, base: dict) -> Self:
        safe = base.get("safeSearchAnnotation")
        props = base.get("imagePropertiesAnnotation")
        return cls(faces=[Face.from_base(f) for f in base.get("faceAnnotations", [])],
                   landmarks=[Landmark.from_base(l) for l in base.get("landmarkAnnotations", [])],
                   logos=[Logo.from_base(l) for l in base.get("logoAnnotations", [])],
                   labels=[Label.from_base(l) for l in base.get("labelAnnotations", [])],
                   text=Text.from_annotations(base.get("textAnnotations", [])),
                   safe_search=None if safe is None else SafeSearch.from_base(safe),
                   properties=None if props is None else Properties.from_base(props))


def _features(faces: int, landmarks: int, logos: int, labels: int,
              text: bool, safe_search: bool, properties: bool) -> List[dict]:
    features = []
    for kind, count in (("FACE_DETECTION", faces), ("LANDMARK_DETECTION", landmarks),
                        ("LOGO_DETECTION", logos), ("LABEL_DETECTION", labels)):
        if count:
            features.append({"type": kind, "maxResults": int(count)})
    if text:
        features.append({"type": "TEXT_DETECTION"})
    if safe_search:
        features.append({"type": "SAFE_SEARCH_DETECTION"})
    if properties:
        features.append({"type": "IMAGE_PROPERTIES"})
    return features


def annotate(*images: Image|str|bytes, faces: int = 0, landmarks: int = 0, logos: int = 0,
             labels: int = 0, text: bool = False, safe_search: bool = False,
             properties: bool = False) -> Annotation|List[Annotation]:
    """
    Run the requested features over one or more images in a single request.
    faces/landmarks/logos/labels are the max results wanted for each, 0 to skip.
    With no features at all every one is asked for with a max of 10.
    Returns one Annotation per image (just the Annotation for a single image).
    A failure for any one image raises its GoogleCloudError.
    """
    if not images:
        raise ValueError("No images to annotate")
    features = _features(faces, landmarks, logos, labels, text, safe_search, properties)
    if not features:
        features = _features(10, 10, 10, 10, True, True, True)
    imgs = [i if isinstance(i, Image) else Image(i) for i in images]
    body = {"requests": [{"image": i.to_base(), "features": features} for i in imgs]}
    response = execute(_get_service().images().annotate(body=body)) or {}
    annotations = []
    for r in response.get("responses", []):
        if "error" in r:
            raise from_status(r["error"])
        annotations.append(Annotation.from_base(r))
    return annotations[0] if len(images) == 1 else annotations
